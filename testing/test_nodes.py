import math
import numpy as np
import pytest

from profsig import Workspace, RealVar, Node, LinearCombination, ProductRatio, Exponential, Gaussian, Poisson, BifurGauss, BinnedPdf


def make_ws() :
  ws = Workspace('nodes')
  ws.add(RealVar('a', 2, -5, 5))
  ws.add(RealVar('b', 4, 0, 10))
  ws.add(RealVar('x', 1.5, 0, 3, nbins=3))
  return ws


def test_functions() :
  ws = make_ws()
  ws.add(LinearCombination('lin', 1, { 'a' : 0.5, 'b' : -1 }))
  ws.add(ProductRatio('ratio', [ 'a', 'b', 3 ], [ 'b', 2 ]))
  ws.add(Exponential('expo', 1.1, 'a'))
  assert ws.eval('lin') == pytest.approx(1 + 1 - 4)
  assert ws.eval('ratio') == pytest.approx(3)
  assert ws.eval('expo') == pytest.approx(1.21)
  assert ws.servers_of('ratio') == [ 'a', 'b', 'b' ]
  assert ws.servers_of('expo') == [ 'a' ]


def test_densities() :
  ws = make_ws()
  ws.add(Gaussian('gauss', 'a', 'b', 2))
  ws.add(Poisson('pois', 'a', 'b'))
  ws.add(BifurGauss('bifur', 'a', 0, 1, 3))
  assert ws.eval('gauss') == pytest.approx(math.exp(-0.5)/(2*math.sqrt(2*math.pi)))
  assert ws.eval('pois') == pytest.approx(math.exp(-4)*16/2)
  assert ws.eval('bifur') == pytest.approx(math.exp(-0.5*(2/3)**2)*2/(math.sqrt(2*math.pi)*4))


def test_binned_density() :
  ws = make_ws()
  pdf = ws.add(BinnedPdf('binned', 'x', [ { 'name' : 'sig', 'yields' : [ 1, 2, 3 ], 'norm' : 'a' },
                                           { 'name' : 'bkg', 'yields' : [ 4, 4, 4 ] } ]))
  x = ws.var('x')
  assert np.allclose(pdf.bin_yields(ws), [ 6, 8, 10 ])
  assert pdf.expected_events(ws) == pytest.approx(24)
  dens = pdf.density_values(ws, [ 'x' ], x, x.bin_centers())
  assert np.sum(dens*x.bin_widths()) == pytest.approx(1)
  assert pdf.density_values(ws, [ 'x' ], x, np.array([ -1, 4 ])).tolist() == [ 0, 0 ]
  assert ws.eval('binned') == pytest.approx(8/24)


def test_binned_yield_mismatch() :
  ws = make_ws()
  ws.add(BinnedPdf('binned', 'x', [ { 'name' : 'sig', 'yields' : [ 1, 2 ] } ]))
  with pytest.raises(ValueError) :
    ws.node('binned').bin_yields(ws)


def test_instantiate() :
  node = Node.instantiate({ 'type' : 'gaussian', 'name' : 'g', 'x' : 'a', 'mean' : 'b', 'sigma' : 0.5 })
  assert isinstance(node, Gaussian)
  assert node.sigma == 0.5
  assert Node.instantiate(node.dump_dict()).dump_dict() == node.dump_dict()
  var = Node.instantiate({ 'type' : 'var', 'name' : 'v', 'value' : 3, 'min_value' : 0, 'max_value' : 1 })
  assert var.value == 3 and var.bounds() == (0, 1)
  with pytest.raises(ValueError) :
    Node.instantiate({ 'type' : 'spline', 'name' : 's' })
  with pytest.raises(ValueError) :
    Node.instantiate({ 'name' : 's' })


def test_var_ranges() :
  var = RealVar('v', 0.5, 0, 1)
  assert var.set_value(2).value == 1
  assert var.assign(2).value == 2
  assert var.set_range(-1, 0.5).value == 0.5
  with pytest.raises(ValueError) :
    var.set_range(1, 0)
  with pytest.raises(ValueError) :
    RealVar('open').bin_edges()
