import math
import pytest

from profsig import Workspace, RealVar, LinearCombination, BinnedPdf, ModelConfig, Model
from profsig import AsimovSynthesizer, make_counting_workspace
from profsig.asimov import value_suffix


def test_value_suffix() :
  assert value_suffix(1) == '_1'
  assert value_suffix(0) == '_0'
  assert value_suffix(0.5) == '_0.5'
  assert value_suffix(125.09) == '_125.09'


@pytest.mark.parametrize('poi_value, expected', [ (1, 10), (0, 5), (2, 15) ])
def test_nominal_asimov(counting_ws, counting_model, poi_value, expected) :
  asimov = AsimovSynthesizer().synthesize(counting_model, False, counting_ws, None, poi_value)
  assert asimov.name == 'asimovData' + value_suffix(poi_value)
  assert asimov.num_entries() == 1
  assert asimov.values('obs_x')[0] == pytest.approx(0.5)
  assert asimov.sum_entries() == pytest.approx(expected)
  for snapshot in [ 'nominalGlobs', 'nominalNuis', 'conditionalGlobs' + value_suffix(poi_value), 'conditionalNuis' + value_suffix(poi_value) ] :
    assert counting_ws.has_snapshot(snapshot)
  assert counting_ws.var('mu').value == poi_value
  assert not counting_ws.var('mu').constant


def test_conditional_asimov(counting_ws, counting_model) :
  nll = counting_model.create_nll(counting_ws.data('obsData'))
  synthesizer = AsimovSynthesizer()
  asimov = synthesizer.synthesize(counting_model, True, counting_ws, nll, 0, 0, True)
  alpha_hat = counting_ws.var('alpha_bkg').value
  assert synthesizer.pairs == [ ('alpha_bkg', 'nom_alpha_bkg') ]
  assert alpha_hat > 0.3
  assert counting_ws.snapshots['conditionalGlobs_0']['nom_alpha_bkg'] == pytest.approx(alpha_hat)
  assert counting_ws.snapshots['conditionalNuis_0']['alpha_bkg'] == pytest.approx(alpha_hat)
  assert counting_ws.var('nom_alpha_bkg').value == 0
  assert counting_ws.snapshots['nominalNuis']['alpha_bkg'] == 0
  assert asimov.sum_entries() == pytest.approx(5*(1 + 0.1*alpha_hat))


def test_conditional_fit_requires_nll(counting_ws, counting_model) :
  with pytest.raises(ValueError) :
    AsimovSynthesizer().synthesize(counting_model, True, counting_ws, None, 1)


def test_existing_nominal_snapshots_are_kept(counting_ws, counting_model) :
  counting_ws.save_snapshot('nominalGlobs', [ 'nom_alpha_bkg' ])
  counting_ws.var('nom_alpha_bkg').assign(0.5)
  AsimovSynthesizer().synthesize(counting_model, False, counting_ws, None, 1)
  assert counting_ws.snapshots['nominalGlobs']['nom_alpha_bkg'] == 0
  assert counting_ws.var('nom_alpha_bkg').value == 0


def test_injection_parameter(counting_ws, counting_model) :
  counting_ws.node('binned').samples[0]['norm'] = 'sig_norm'
  counting_ws.add(RealVar('ATLAS_norm_muInjection', 0, 0, 10, constant=True))
  counting_ws.add(LinearCombination('sig_norm', 0, { 'mu' : 1, 'ATLAS_norm_muInjection' : 1 }))
  asimov = AsimovSynthesizer().synthesize(counting_model, False, counting_ws, None, 0, 1, True, 2)
  assert asimov.sum_entries() == pytest.approx(15)
  assert counting_ws.var('ATLAS_norm_muInjection').value == 0
  assert counting_ws.var('mu').value == 0


def test_injection_without_parameter(counting_ws, counting_model) :
  asimov = AsimovSynthesizer().synthesize(counting_model, False, counting_ws, None, 0, 1, True, 2)
  assert asimov.name == 'asimovData_0'
  assert asimov.sum_entries() == pytest.approx(15)
  assert counting_ws.var('mu').value == 2


def test_nan_yield() :
  ws = make_counting_workspace(signal=math.nan)
  with pytest.raises(ValueError, match='NaN') :
    AsimovSynthesizer().synthesize(Model.create(ws), False, ws, None, 1)


def test_empty_bins_are_skipped(capsys) :
  ws = Workspace('shape')
  ws.add(RealVar('mu', 1, -40, 40))
  ws.add(RealVar('x', 1.5, 0, 3, nbins=3))
  ws.add(BinnedPdf('shape', 'x', [ { 'name' : 'signal', 'yields' : [ 2, 0, 6 ], 'norm' : 'mu' } ]))
  ws.add_model_config(ModelConfig('ModelConfig', 'shape', [ 'x' ], [ 'mu' ], [], []))
  asimov = AsimovSynthesizer().synthesize(Model.create(ws), False, ws, None, 1)
  assert asimov.num_entries() == 2
  assert asimov.values('x').tolist() == pytest.approx([ 0.5, 2.5 ])
  assert asimov.weights().tolist() == pytest.approx([ 2, 6 ])
  assert 'WARNING' in capsys.readouterr().out


def test_simultaneous_asimov() :
  ws = make_counting_workspace(channels=[ 'A', 'B' ])
  model = Model.create(ws)
  asimov = AsimovSynthesizer().synthesize(model, False, ws, None, 1)
  assert asimov.index == 'channelCat'
  assert asimov.labels() == [ 'A', 'B' ]
  assert asimov.num_entries() == 2
  assert asimov.sum_entries() == pytest.approx(20)
  assert math.isfinite(model.create_nll(asimov).value())
