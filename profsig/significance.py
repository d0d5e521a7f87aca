"""Module containing the significance computation

  * :func:`significance_from_q0` and :func:`pvalue_from_significance` : conversions
    between the discovery test statistic, the significance and the p-value.

  * :class:`SignificancePipeline` : the computation of the observed, median expected
    and injected discovery significances of a model.

The test statistic is computed from two fits of the same NLL objective, one
with the POI fixed to 0 and one with the POI free:

  `q0 = 2*(nll(mu=0) - nll(mu_hat))`

If uncapping is enabled, `q0` is negated when the best-fit POI value is
negative. The significance is then `sign(q0)*sqrt(|q0|)`, and the p-value
`(1 - erf(Z/sqrt(2)))/2`. A zero significance is reported with a p-value of 1.
"""

import math
import scipy.special

from .asimov import AsimovSynthesizer, value_suffix
from .constraints import ConstraintUnfolder
from .minimizers import RobustMinimizer, SUCCESS_CODES
from .results import SignificanceResult


def significance_from_q0(q0 : float) -> float :
  """Signed significance corresponding to a test statistic value

    Args:
       q0 : the test statistic value
    Returns:
       `sign(q0)*sqrt(|q0|)`, with sign(0) = 0
  """
  sign = 0 if q0 == 0 else (1 if q0 > 0 else -1)
  return sign*math.sqrt(abs(q0))

def pvalue_from_significance(sig : float) -> float :
  """One-sided p-value corresponding to a significance

    Args:
       sig : the significance
    Returns:
       the p-value, or 1 if the significance is 0
  """
  if sig == 0 : return 1
  return float((1 - scipy.special.erf(sig/math.sqrt(2)))/2)


# -------------------------------------------------------------------------
class SignificancePipeline :
  """Computation of discovery significances

  Three computations are available, each enabled by a switch:

  * *median* (`do_median`) : significance for the Asimov dataset built at POI = 1, after
    profiling the nuisance parameters on the observed data at POI = `mu_profile`. The dataset
    is taken from the workspace if it already exists.

  * *observed* (`do_obs`) : significance for the observed dataset.

  * *injected* (`do_inj`) : significance for an Asimov dataset built with a given amount of
    injected signal, taken from the injection parameter if present and from the initial
    POI value otherwise.

  With `blind` set, the observed computation and the conditional profiling are disabled.

  Attributes:
     ws                   (Workspace) : the workspace
     model                (Model)     : the model
     data_name            (str)   : name of the observed dataset
     asimov_name          (str)   : name of an existing Asimov dataset to use for the median computation
     conditional_snapshot (str)   : snapshot of global observables matching the existing Asimov dataset
     nominal_snapshot     (str)   : snapshot of nominal global observables
     do_conditional       (bool)  : profile the nuisance parameters on the observed data when building Asimov datasets
     do_obs               (bool)  : compute the observed significance
     do_median            (bool)  : compute the median expected significance
     do_inj               (bool)  : compute the significance for injected signal
     do_uncap             (bool)  : allow negative POI values and signed test statistics
     mu_profile           (float) : POI value at which the nuisance parameters are profiled
     injection_par        (str)   : name of the injection amount parameter
     override_par         (str)   : nuisance parameter set to `override_value` whenever the Asimov dataset is built
     override_value       (float) : the override value
     override_tag         (str)   : if set and found in `input_label`, the Asimov dataset is rebuilt even if already present
     input_label          (str)   : label of the input (typically the input file name)
     minimizer  (RobustMinimizer) : the minimizer
     num_cpu              (int)   : number of threads for the likelihood evaluation
     mass                 (float) : mass point label of the result
     folder               (str)   : folder label of the result
     verbosity            (int)   : output level
  """

  def __init__(self, ws : 'Workspace', model : 'Model', data_name : str = 'obsData', asimov_name : str = 'asimovData_1',
               conditional_snapshot : str = 'conditionalGlobs_1', nominal_snapshot : str = 'nominalGlobs',
               do_conditional : bool = True, do_obs : bool = True, do_median : bool = True, do_inj : bool = True,
               do_uncap : bool = True, blind : bool = False, mu_profile : float = 1,
               injection_par : str = 'ATLAS_norm_muInjection', override_par : str = None, override_value : float = None,
               override_tag : str = None, input_label : str = '', minimizer : RobustMinimizer = None,
               num_cpu : int = 1, strict : bool = True, mass : float = 0, folder : str = '', verbosity : int = 0) :
    self.ws = ws
    self.model = model
    self.data_name = data_name
    self.asimov_name = asimov_name
    self.conditional_snapshot = conditional_snapshot
    self.nominal_snapshot = nominal_snapshot
    self.do_conditional = do_conditional and not blind
    self.do_obs = do_obs and not blind
    self.do_median = do_median
    self.do_inj = do_inj
    self.do_uncap = do_uncap
    self.mu_profile = mu_profile
    self.injection_par = injection_par
    self.override_par = override_par
    self.override_value = override_value
    self.override_tag = override_tag
    self.input_label = input_label
    self.minimizer = minimizer if minimizer is not None else RobustMinimizer(verbosity=verbosity)
    self.num_cpu = num_cpu
    self.mass = mass
    self.folder = folder
    self.verbosity = verbosity
    self.synthesizer = AsimovSynthesizer(self.minimizer, ConstraintUnfolder(strict, verbosity), injection_par=injection_par,
                                         nominal_globs=nominal_snapshot, verbosity=verbosity)

  def override_var(self, check_tag : bool = True) :
    if self.override_par is None or self.override_value is None : return None
    if not self.override_par in self.model.nuisance_parameters() : return None
    if check_tag and self.override_tag is not None and not self.override_tag in self.input_label : return None
    return self.ws.var(self.override_par)

  def kick(self) :
    """Shift the first nuisance parameter by +0.1, to start the fit away from the snapshot values"""
    nuis = self.model.nuisance_parameters()
    if len(nuis) == 0 : return
    var = self.ws.var(nuis[0])
    if var is not None : var.set_value(var.value + 0.1)

  def fit(self, nll : 'NLL') -> float :
    """Minimize an objective, retrying once from the baseline snapshot on failure

      Args:
         nll : the NLL objective
      Returns:
         the NLL value at the minimum
    """
    status = self.minimizer.minimize(nll, self.ws)
    if status not in SUCCESS_CODES :
      print("WARNING: fit failed with status %d, retrying from snapshot 'conditionalNuis_0'." % status)
      self.ws.load_snapshot('conditionalNuis_0')
      status = self.minimizer.minimize(nll, self.ws)
      if status in SUCCESS_CODES : print('INFO: retry succeeded.')
    return nll.value()

  def test_statistic(self, nll : 'NLL', kick : bool = False, snapshot : str = 'conditionalNuis_0') -> float :
    """Compute the discovery test statistic for an objective

      Args:
         nll      : the NLL objective
         kick     : if `True`, shift the first nuisance parameter before each fit
         snapshot : nuisance parameter snapshot loaded before each fit
      Returns:
         the test statistic value, negated for negative POI values if uncapping is enabled
    """
    poi = self.model.poi()
    self.ws.load_snapshot(snapshot)
    poi.set_value(0)
    poi.set_constant(True)
    if kick : self.kick()
    nll_cond = self.fit(nll)
    poi.set_constant(False)
    if kick :
      poi.set_value(1)
      self.ws.load_snapshot(snapshot)
      self.kick()
    nll_min = self.fit(nll)
    q0 = 2*(nll_cond - nll_min)
    if self.verbosity >= 1 : print('INFO: nll(mu=0) = %g, nll(mu_hat=%g) = %g, q0 = %g' % (nll_cond, poi.value, nll_min, q0))
    if self.do_uncap and poi.value < 0 : q0 = -q0
    return q0

  def floored_significance(self, q0 : float) -> float :
    if not self.do_uncap and ((-0.1 < q0 < 0) or self.model.poi().value < 0.001) :
      if self.verbosity >= 1 : print('INFO: setting significance to 0 for q0 = %g, mu_hat = %g.' % (q0, self.model.poi().value))
      return 0
    return significance_from_q0(q0)

  def run(self) -> SignificanceResult :
    """Run the significance computations

      Returns:
         the result record
    """
    ws, model = self.ws, self.model
    data = ws.data(self.data_name)
    if data is None : raise KeyError("Dataset '%s' not found in workspace '%s'." % (self.data_name, ws.name))
    nuis = model.nuisance_parameters()

    ws.load_or_save_snapshot('conditionalNuis_0', nuis)
    poi = model.poi()
    poi.set_range(-50, poi.max_value)
    mu_init = poi.value

    obs_nll = model.create_nll(data, nuis, offset=True, num_cpu=self.num_cpu) if self.do_obs or self.do_conditional else None
    asimov = ws.data(self.asimov_name)
    cond_snapshot = self.conditional_snapshot
    if asimov is None or self.override_var() is not None :
      override = self.override_var(check_tag=False)
      if override is not None :
        print("INFO: setting '%s' to %g before building the Asimov dataset." % (override.name, self.override_value))
        override.set_value(self.override_value)
      print("INFO: Asimov dataset '%s' not available, building it." % self.asimov_name)
      asimov = self.synthesizer.synthesize(model, self.do_conditional, ws, obs_nll, 1, self.mu_profile, True)
      ws.add_data(asimov, replace=True)
      cond_snapshot = 'conditionalGlobs' + value_suffix(self.mu_profile)

    if self.do_uncap :
      poi.set_range(-40, 40)
    else :
      poi.set_range(0, 40)

    result = SignificanceResult(self.mass, self.folder)

    if self.do_median :
      if self.verbosity >= 1 : print("INFO: computing the median significance using dataset '%s'." % asimov.name)
      asimov_nll = model.create_nll(asimov, nuis, offset=True, num_cpu=self.num_cpu)
      ws.load_snapshot(cond_snapshot)
      result.med_q0 = self.test_statistic(asimov_nll, kick=True, snapshot='conditionalNuis' + value_suffix(self.mu_profile))
      result.med_sig = significance_from_q0(result.med_q0)
      ws.load_snapshot(self.nominal_snapshot)

    if self.do_obs :
      if self.verbosity >= 1 : print("INFO: computing the observed significance using dataset '%s'." % data.name)
      result.obs_q0 = self.test_statistic(obs_nll)
      result.obs_sig = self.floored_significance(result.obs_q0)

    if self.do_inj :
      injection_var = ws.var(self.injection_par)
      mu_inj = injection_var.value if injection_var is not None else mu_init
      if self.verbosity >= 1 : print('INFO: computing the significance for an injected signal of %g.' % mu_inj)
      inj_data = self.synthesizer.synthesize(model, self.do_conditional, ws, obs_nll, 0, 1, True, mu_inj)
      ws.add_data(inj_data, replace=True)
      ws.load_snapshot('conditionalGlobs' + value_suffix(1))
      inj_nll = model.create_nll(inj_data, nuis, offset=True, num_cpu=self.num_cpu)
      result.inj_q0 = self.test_statistic(inj_nll)
      result.inj_sig = self.floored_significance(result.inj_q0)

    result.obs_pvalue = pvalue_from_significance(result.obs_sig)
    result.med_pvalue = pvalue_from_significance(result.med_sig)
    result.inj_pvalue = pvalue_from_significance(result.inj_sig)
    return result
