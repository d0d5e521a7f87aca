import warnings
import numpy as np
import pytest
from types import SimpleNamespace

from profsig import Workspace, RealVar, MinimizerOptions, MinimizerService, RobustMinimizer, message_scope
from profsig import Model, make_counting_workspace
from profsig.minimizers import SUCCESS_CODES


class FakeService :
  """Minimizer service returning a fixed sequence of status codes"""

  def __init__(self, statuses, check = None) :
    self.statuses = list(statuses)
    self.strategies = []
    self.check = check
    self.min_nll = 0

  def minimize(self, nll, strategy, print_level) :
    self.strategies.append(strategy)
    if self.check is not None : self.check()
    return self.statuses[min(len(self.strategies), len(self.statuses)) - 1]


class QuadraticNLL :
  """Sum of (x - target)**2 over a set of workspace parameters"""

  def __init__(self, ws, targets) :
    self.ws = ws
    self.targets = targets

  def free_parameters(self) :
    return [ par for par in self.targets if not self.ws.var(par).constant ]

  def value(self) :
    return sum([ (self.ws.var(par).value - target)**2 for par, target in self.targets.items() ])

  def __call__(self, values, pars) :
    for par, val in zip(pars, values) : self.ws.var(par).assign(val)
    return self.value()


class EdgeNLL(QuadraticNLL) :
  """Quadratic objective that is only defined at the origin"""

  def __call__(self, values, pars) :
    if np.any(np.asarray(values) != 0) : return float('nan')
    return QuadraticNLL.__call__(self, values, pars)


def make_ws() :
  ws = Workspace('quad')
  ws.add(RealVar('a', 0, -10, 10))
  ws.add(RealVar('b', 0, -10, 10))
  return ws


def test_no_retry_on_success() :
  service = FakeService([ 0 ])
  minimizer = RobustMinimizer(service, strategy=1)
  assert minimizer.minimize(None, make_ws()) == 0
  assert service.strategies == [ 1 ]


def test_precision_warning_is_success() :
  service = FakeService([ 1 ])
  assert RobustMinimizer(service, strategy=0).minimize(None, make_ws()) == 1
  assert service.strategies == [ 0 ]


@pytest.mark.parametrize('strategy, expected', [ (0, [ 0, 1, 2 ]), (1, [ 1, 2 ]), (2, [ 2 ]) ])
def test_escalation(capsys, strategy, expected) :
  service = FakeService([ 3 ])
  minimizer = RobustMinimizer(service, strategy=strategy)
  assert minimizer.minimize(None, make_ws()) == 3
  assert service.strategies == expected
  assert minimizer.ncalls == len(expected)
  assert 'still failing' in capsys.readouterr().out


def test_recovery_after_retry() :
  service = FakeService([ 4, 0 ])
  assert RobustMinimizer(service, strategy=0).minimize(None, make_ws()) == 0
  assert service.strategies == [ 0, 1 ]


def test_numerical_warnings_restored() :
  before = np.geterr()
  filters = list(warnings.filters)

  def check() :
    assert np.geterr()['divide'] == 'ignore'
    raise RuntimeError('failure inside minimization')

  with pytest.raises(RuntimeError) :
    RobustMinimizer(FakeService([ 0 ], check), print_level=-1).minimize(None, make_ws())
  assert np.geterr() == before
  assert warnings.filters == filters


def test_message_scope_verbose() :
  before = np.geterr()
  with message_scope(1) :
    assert np.geterr() == before


def test_constant_parameters_restored() :
  ws = make_ws()
  seen = []
  service = FakeService([ 0 ], lambda : seen.append(ws.var('a').constant))
  minimizer = RobustMinimizer(service, const_pars=[ 'a', 'missing' ], const_test=True)
  minimizer.minimize(None, ws)
  assert seen == [ True ]
  assert not ws.var('a').constant

  def fail() : raise RuntimeError('failure inside minimization')
  ws.var('a').set_constant(False)
  with pytest.raises(RuntimeError) :
    RobustMinimizer(FakeService([ 0 ], fail), const_pars=[ 'a' ], const_test=True).minimize(None, ws)
  assert not ws.var('a').constant


@pytest.mark.parametrize('strategy', [ 0, 1, 2 ])
def test_service_minimizes(strategy) :
  ws = make_ws()
  nll = QuadraticNLL(ws, { 'a' : 3, 'b' : -2 })
  service = MinimizerService()
  assert service.minimize(nll, strategy, -1) == 0
  assert ws.var('a').value == pytest.approx(3, abs=1E-3)
  assert ws.var('b').value == pytest.approx(-2, abs=1E-3)
  assert service.min_nll == pytest.approx(0, abs=1E-5)


def test_service_respects_bounds() :
  ws = make_ws()
  ws.var('a').set_range(-1, 1)
  nll = QuadraticNLL(ws, { 'a' : 3 })
  MinimizerService().minimize(nll, 1, -1)
  assert ws.var('a').value == pytest.approx(1)


def test_service_without_free_parameters() :
  ws = make_ws()
  ws.var('a').set_constant(True)
  nll = QuadraticNLL(ws, { 'a' : 3 })
  assert MinimizerService().minimize(nll, 1, -1) == 0
  assert ws.var('a').value == 0


def test_status_codes() :
  assert MinimizerService.status(SimpleNamespace(success=True, message='CONVERGENCE'), 1) == 0
  assert MinimizerService.status(SimpleNamespace(success=True, message='CONVERGENCE'), float('nan')) == 5
  assert MinimizerService.status(SimpleNamespace(success=False, message='STOP: TOTAL NO. of f AND g EVALUATIONS EXCEEDS LIMIT'), 1) == 4
  assert MinimizerService.status(SimpleNamespace(success=False, message='Maximum number of function evaluations has been exceeded.'), 1) == 4
  assert MinimizerService.status(SimpleNamespace(success=False, message='ABNORMAL_TERMINATION_IN_LNSRCH'), 1) == 3
  assert MinimizerService.status(SimpleNamespace(success=True, message='Desired error not necessarily achieved due to precision loss.'), 1) == 1
  assert MinimizerService.status(SimpleNamespace(success=False, message='failed'), 1) == 3


def test_default_options() :
  service = FakeService([ 0 ])
  minimizer = RobustMinimizer(service)
  MinimizerOptions.set_default_strategy(2)
  minimizer.minimize(None, make_ws())
  assert service.strategies == [ 2 ]
  MinimizerOptions.set_default_strategy(0)
  minimizer.minimize(None, make_ws())
  assert service.strategies == [ 2, 0 ]
  assert RobustMinimizer(service, strategy=1).minimize(None, make_ws()) == 0
  assert service.strategies == [ 2, 0, 1 ]
  with pytest.raises(ValueError) :
    MinimizerOptions.set_default_strategy(3)


def test_stuck_at_invalid_boundary() :
  # the unconstrained best fit mu = -0.6 lies close to the region where the expected yield is negative
  ws = make_counting_workspace(n_obs=2)
  nll = Model.create(ws).create_nll(ws.data('obsData'))
  status = MinimizerService().minimize(nll, 1, -1)
  assert status not in SUCCESS_CODES or ws.var('mu').value == pytest.approx(-0.6, abs=2E-2)
  ws.var('mu').set_value(1)
  ws.var('alpha_bkg').set_value(0)
  assert RobustMinimizer(strategy=0).minimize(nll) in SUCCESS_CODES
  assert ws.var('mu').value == pytest.approx(-0.6, abs=2E-2)


def test_no_progress_from_start_is_failure() :
  ws = make_ws()
  service = MinimizerService()
  assert service.minimize(EdgeNLL(ws, { 'a' : 3 }), 1, -1) == 3
  assert service.ninvalid > 0
  assert ws.var('a').value == 0
