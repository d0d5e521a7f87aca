"""Module containing the Asimov dataset synthesis

  * :class:`AsimovSynthesizer` : builds the expected (*Asimov*) dataset of a model
    for a given value of the parameter of interest.

The nuisance parameters are first set to their conditional best-fit values
for a chosen POI value (the *profile* value), using a fit to the observed
data. The global observables paired to the nuisance parameters are then
moved to these best-fit values, so that the constraint terms are centered
on them. The expected dataset is built from the per-bin expected yields of
the model, one weighted entry per bin of the primary observable of each
channel.

The conditional values are stored in snapshots named `conditionalGlobs_<mu>`
and `conditionalNuis_<mu>`, where `<mu>` is the profile value. The
nominal values of the global observables and nuisance parameters are
stored on first use in the `nominalGlobs` and `nominalNuis` snapshots.
At the end of the synthesis, the global observables are returned to their
nominal values, but the nuisance parameters are left at their conditional
values.
"""

import math

from .data import Dataset
from .constraints import ConstraintUnfolder
from .minimizers import RobustMinimizer


def value_suffix(value : float) -> str :
  """Suffix used to label snapshots and datasets by a POI value"""
  return '_%.5g' % value


# -------------------------------------------------------------------------
class AsimovSynthesizer :
  """Class building Asimov datasets

  Attributes:
     minimizer     (RobustMinimizer)    : minimizer used for the conditional fit
     unfolder      (ConstraintUnfolder) : unfolder used to pair nuisance parameters and global observables
     injection_par (str)   : name of the parameter setting the amount of injected signal, if present in the workspace
     nominal_globs (str)   : name of the snapshot of nominal global observable values
     nominal_nuis  (str)   : name of the snapshot of nominal nuisance parameter values
     max_weight    (float) : bins with expected yields above this value are skipped
     verbosity     (int)   : output level
  """

  def __init__(self, minimizer : RobustMinimizer = None, unfolder : ConstraintUnfolder = None,
               injection_par : str = 'ATLAS_norm_muInjection', nominal_globs : str = 'nominalGlobs',
               nominal_nuis : str = 'nominalNuis', max_weight : float = 1E18, verbosity : int = 0) :
    self.minimizer = minimizer if minimizer is not None else RobustMinimizer(verbosity=verbosity)
    self.unfolder = unfolder if unfolder is not None else ConstraintUnfolder(verbosity=verbosity)
    self.injection_par = injection_par
    self.nominal_globs = nominal_globs
    self.nominal_nuis = nominal_nuis
    self.max_weight = max_weight
    self.verbosity = verbosity
    self.pairs = []

  def synthesize(self, model : 'Model', do_conditional : bool, ws : 'Workspace', conditioning_nll : 'NLL',
                 poi_value : float, profile_poi_value : float = None, do_fit : bool = True,
                 injection_value : float = None) -> Dataset :
    """Build the Asimov dataset of a model

      Args:
         model            : the model
         do_conditional   : if `True`, set the nuisance parameters and global observables
                            to their conditional values; otherwise use the nominal ones
         ws               : the workspace holding the parameters
         conditioning_nll : the NLL used for the conditional fit (typically, to the observed data)
         poi_value        : the POI value at which the dataset is built
         profile_poi_value: the POI value of the conditional fit (default: `poi_value`)
         do_fit           : if `False`, skip the conditional fit and use the current values
         injection_value  : if not `None`, the amount of injected signal
      Returns:
         the Asimov dataset
    """
    if profile_poi_value is None : profile_poi_value = poi_value
    poi = model.poi()
    globs, nuis = model.global_observables(), model.nuisance_parameters()
    suffix_prof = value_suffix(profile_poi_value)

    self.pairs = self.unfolder.pairs(model)

    ws.save_snapshot('tmpGlobs', globs)
    ws.save_snapshot('tmpNuis', nuis)
    if ws.has_snapshot(self.nominal_globs) :
      ws.load_snapshot('tmpGlobs')
    else :
      print("INFO: snapshot '%s' does not exist, saving it." % self.nominal_globs)
      ws.save_snapshot(self.nominal_globs, globs)
    if ws.has_snapshot(self.nominal_nuis) :
      ws.load_snapshot('tmpNuis')
    else :
      print("INFO: snapshot '%s' does not exist, saving it." % self.nominal_nuis)
      ws.save_snapshot(self.nominal_nuis, nuis)

    poi.set_value(profile_poi_value)
    poi.set_constant(True)
    if do_conditional and do_fit :
      if conditioning_nll is None : raise ValueError('A conditioning NLL is required to perform the conditional fit.')
      self.minimizer.minimize(conditioning_nll, ws)
    poi.set_constant(False)
    poi.set_value(poi_value)

    for nui, glob in self.pairs :
      ws.var(glob).assign(ws.eval(nui))
      if self.verbosity >= 2 : print("INFO: setting global observable '%s' to %g" % (glob, ws.var(glob).value))

    if self.verbosity >= 1 :
      print("INFO: saving conditional snapshots 'conditionalGlobs%s' and 'conditionalNuis%s'" % (suffix_prof, suffix_prof))
    ws.save_snapshot('conditionalGlobs' + suffix_prof, globs)
    ws.save_snapshot('conditionalNuis' + suffix_prof, nuis)
    if not do_conditional :
      ws.load_snapshot(self.nominal_globs)
      ws.load_snapshot(self.nominal_nuis)

    poi.set_value(poi_value)
    injection_var = None
    if injection_value is not None :
      injection_var = ws.var(self.injection_par)
      if injection_var is not None :
        injection_var.set_value(injection_value)
      else :
        poi.set_value(injection_value)

    name = 'asimovData' + value_suffix(poi_value)
    if model.is_simultaneous() :
      index = model.index_category()
      category = ws.cat(index)
      channel_data = {}
      for i, label in enumerate(category.labels) :
        category.set_index(i)
        pdf = model.channels()[label]
        channel_data[label] = self.expected_data('combAsimovData%d' % (i + 1), model, ws, pdf)
        if self.verbosity >= 1 : print("INFO: channel '%s' : %s" % (label, channel_data[label].string_repr()))
      asimov = Dataset.merge(name, channel_data, index)
    else :
      asimov = self.expected_data(name, model, ws, model.pdf())

    if injection_var is not None : injection_var.set_value(0)
    ws.load_snapshot(self.nominal_globs)
    return asimov

  def expected_data(self, name : str, model : 'Model', ws : 'Workspace', pdf) -> Dataset :
    """Expected dataset of a single-channel density

      One entry is added per bin of the primary observable, located
      at the bin center and weighted by the expected yield in the bin.

      Args:
         name  : the dataset name
         model : the model
         ws    : the workspace holding the parameters
         pdf   : the density of the channel
      Returns:
         the dataset
    """
    obs_names = [ obs for obs in model.observables() if ws.var(obs) is not None ]
    x = model.primary_observable(pdf)
    centers = x.bin_centers()
    nexp = pdf.expected_events(ws)
    weights = pdf.density_values(ws, model.observables(), x, centers)*x.bin_widths()*nexp
    data = Dataset(name, obs_names)
    values = { obs : ws.var(obs).value for obs in obs_names }
    for center, weight in zip(centers, weights) :
      if weight <= 0 or weight > self.max_weight :
        print("WARNING: skipping bin of observable '%s' at %g with expected yield %g." % (x.name, center, weight))
        continue
      values[x.name] = center
      data.add(values, weight)
      if self.verbosity >= 2 : print('INFO: %s = %g : weight = %g' % (x.name, center, weight))
    total = data.sum_entries()
    if self.verbosity >= 1 : print("INFO: dataset '%s' has total weight %g" % (name, total))
    if math.isnan(total) : raise ValueError("Total weight of Asimov dataset '%s' is NaN, please check the model inputs." % name)
    return data
