import math
import pytest

from profsig import SignificancePipeline, AsimovSynthesizer, RobustMinimizer, make_counting_workspace, Model
from profsig import significance_from_q0, pvalue_from_significance


class StubMinimizer :
  """Minimizer returning a fixed sequence of status codes without changing any value"""

  def __init__(self, statuses) :
    self.statuses = list(statuses)
    self.calls = 0

  def minimize(self, nll, ws = None) :
    self.calls += 1
    return self.statuses.pop(0)


class StubNLL :
  def value(self) :
    return 1.5


def test_significance_from_q0() :
  assert significance_from_q0(4) == pytest.approx(2)
  assert significance_from_q0(-4) == pytest.approx(-2)
  assert significance_from_q0(0) == 0
  for q0 in [ 0.3, -2.5, 9 ] :
    sig = significance_from_q0(q0)
    assert sig**2 == pytest.approx(abs(q0))
    assert (sig > 0) == (q0 > 0)


def test_pvalues() :
  assert pvalue_from_significance(0) == 1
  assert pvalue_from_significance(1) == pytest.approx(0.158655, abs=1E-6)
  assert pvalue_from_significance(-1) == pytest.approx(0.841345, abs=1E-6)
  assert pvalue_from_significance(5) == pytest.approx(2.8665E-7, rel=1E-3)
  pvalues = [ pvalue_from_significance(sig) for sig in [ 0.5, 1, 2, 3 ] ]
  assert pvalues == sorted(pvalues, reverse=True)


def test_floored_significance(counting_ws, counting_model) :
  capped = SignificancePipeline(counting_ws, counting_model, do_uncap=False)
  counting_ws.var('mu').set_value(0.5)
  assert capped.floored_significance(-0.05) == 0
  assert capped.floored_significance(4) == pytest.approx(2)
  counting_ws.var('mu').set_value(0.0005)
  assert capped.floored_significance(4) == 0
  uncapped = SignificancePipeline(counting_ws, counting_model, do_uncap=True)
  assert uncapped.floored_significance(-0.05) == pytest.approx(-math.sqrt(0.05))


def test_fit_retries_from_baseline(counting_ws, counting_model, capsys) :
  counting_ws.save_snapshot('conditionalNuis_0', [ 'alpha_bkg' ])
  counting_ws.var('alpha_bkg').set_value(2)
  minimizer = StubMinimizer([ 3, 0 ])
  pipeline = SignificancePipeline(counting_ws, counting_model, minimizer=minimizer)
  assert pipeline.fit(StubNLL()) == 1.5
  assert minimizer.calls == 2
  assert counting_ws.var('alpha_bkg').value == 0
  assert 'retry succeeded' in capsys.readouterr().out


def test_fit_without_retry(counting_ws, counting_model) :
  counting_ws.save_snapshot('conditionalNuis_0', [ 'alpha_bkg' ])
  counting_ws.var('alpha_bkg').set_value(2)
  minimizer = StubMinimizer([ 1 ])
  SignificancePipeline(counting_ws, counting_model, minimizer=minimizer).fit(StubNLL())
  assert minimizer.calls == 1
  assert counting_ws.var('alpha_bkg').value == 2


def test_kick(counting_ws, counting_model) :
  SignificancePipeline(counting_ws, counting_model).kick()
  assert counting_ws.var('alpha_bkg').value == pytest.approx(0.1)


def test_symmetric_asimov(counting_ws, counting_model) :
  asimov = AsimovSynthesizer().synthesize(counting_model, False, counting_ws, None, 1)
  nll = counting_model.create_nll(asimov)
  poi = counting_model.poi()
  minimizer = RobustMinimizer()
  poi.set_value(1)
  poi.set_constant(True)
  minimizer.minimize(nll)
  nll_cond = nll.value()
  poi.set_constant(False)
  minimizer.minimize(nll)
  nll_min = nll.value()
  q0 = 2*(nll_cond - nll_min)
  assert q0 == pytest.approx(0, abs=1E-4)
  assert poi.value == pytest.approx(1, abs=1E-2)
  # both fits stop within the minimizer tolerance, so the significance only vanishes to that precision
  sig = significance_from_q0(q0)
  assert abs(sig) <= 1E-2
  pvalue = pvalue_from_significance(sig)
  assert pvalue == 1 or pvalue == pytest.approx(0.5, abs=5E-3)


def test_pipeline(counting_ws, counting_model) :
  result = SignificancePipeline(counting_ws, counting_model, mass=125, folder='test').run()
  assert result.obs_q0 > 0
  assert result.obs_sig > 0
  assert result.obs_pvalue < 0.5
  assert result.obs_pvalue == pytest.approx(pvalue_from_significance(result.obs_sig))
  assert result.med_sig > 0
  assert result.med_sig == pytest.approx(significance_from_q0(result.med_q0))
  assert result.inj_sig > 0
  assert result.mass == 125
  assert counting_ws.data('asimovData_1') is not None
  assert counting_ws.data('asimovData_0') is not None
  for snapshot in [ 'conditionalNuis_0', 'conditionalGlobs_1', 'conditionalNuis_1', 'nominalGlobs' ] :
    assert counting_ws.has_snapshot(snapshot)
  assert counting_ws.var('mu').min_value == -40


def test_pipeline_deficit(counting_ws, counting_model) :
  counting_ws.data('obsData').frame().loc[0, 'weight'] = 4
  capped = SignificancePipeline(counting_ws, counting_model, do_median=False, do_inj=False, do_uncap=False).run()
  assert capped.obs_sig == 0
  assert capped.obs_pvalue == 1
  uncapped = SignificancePipeline(counting_ws, counting_model, do_median=False, do_inj=False).run()
  assert uncapped.obs_q0 < 0
  assert uncapped.obs_sig < 0
  assert uncapped.obs_pvalue > 0.5


def test_pipeline_deficit_near_invalid_region() :
  ws = make_counting_workspace(n_obs=2)
  result = SignificancePipeline(ws, Model.create(ws), do_median=False, do_inj=False).run()
  assert result.obs_q0 < 0
  assert result.obs_sig < 0
  assert result.obs_pvalue > 0.5
  assert ws.var('mu').value == pytest.approx(-0.6, abs=2E-2)


def test_blind_pipeline(counting_ws, counting_model) :
  pipeline = SignificancePipeline(counting_ws, counting_model, blind=True, do_inj=False)
  assert not pipeline.do_obs and not pipeline.do_conditional
  result = pipeline.run()
  assert result.obs_sig == 0
  assert result.obs_pvalue == 1
  assert result.med_sig > 0


def test_existing_asimov_is_reused(counting_ws, counting_model) :
  asimov = AsimovSynthesizer().synthesize(counting_model, False, counting_ws, None, 1)
  counting_ws.add_data(asimov)
  pipeline = SignificancePipeline(counting_ws, counting_model, do_obs=False, do_inj=False)
  pipeline.run()
  assert counting_ws.data('asimovData_1') is asimov


def test_override(counting_ws, counting_model) :
  pipeline = SignificancePipeline(counting_ws, counting_model, override_par='alpha_bkg', override_value=0.7,
                                  override_tag='ic10', input_label='ws_ic10.json')
  assert pipeline.override_var() is counting_ws.var('alpha_bkg')
  pipeline.input_label = 'ws_ic20.json'
  assert pipeline.override_var() is None
  assert pipeline.override_var(check_tag=False) is counting_ws.var('alpha_bkg')
  pipeline.override_par = 'mu'
  pipeline.input_label = 'ws_ic10.json'
  assert pipeline.override_var() is None


def test_missing_data(counting_ws, counting_model) :
  with pytest.raises(KeyError) :
    SignificancePipeline(counting_ws, counting_model, data_name='nope').run()


def test_simultaneous_pipeline() :
  ws = make_counting_workspace(channels=[ 'A', 'B' ])
  result = SignificancePipeline(ws, Model.create(ws), do_inj=False, num_cpu=2).run()
  assert result.obs_sig > 0
  assert result.med_sig > 0


def test_override_on_missing_asimov(counting_ws, counting_model) :
  pipeline = SignificancePipeline(counting_ws, counting_model, override_par='alpha_bkg', override_value=0.7, override_tag='ic10',
                                  input_label='ws_ic20.json', do_conditional=False, do_obs=False, do_median=False, do_inj=False)
  pipeline.run()
  assert counting_ws.snapshots['conditionalGlobs_1']['nom_alpha_bkg'] == pytest.approx(0.7)
  assert counting_ws.data('asimovData_1').sum_entries() == pytest.approx(10.35)


def test_override_tag_forces_rebuild(counting_ws, counting_model) :
  asimov = AsimovSynthesizer().synthesize(counting_model, False, counting_ws, None, 1)
  counting_ws.add_data(asimov)
  options = dict(override_par='alpha_bkg', override_value=0.7, override_tag='ic10', do_conditional=False, do_obs=False, do_inj=False)
  SignificancePipeline(counting_ws, counting_model, input_label='ws_ic20.json', **options).run()
  assert counting_ws.data('asimovData_1') is asimov
  SignificancePipeline(counting_ws, counting_model, input_label='ws_ic10.json', **options).run()
  assert counting_ws.data('asimovData_1') is not asimov
  assert counting_ws.snapshots['conditionalGlobs_1']['nom_alpha_bkg'] == pytest.approx(0.7)
