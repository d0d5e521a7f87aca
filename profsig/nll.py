"""Module containing the negative log-likelihood objective

  * :class:`NLL` : the negative log-likelihood of a model for a given dataset,
    including the constraint terms of a chosen set of parameters.

For each channel, the extended likelihood is used:

  `nll_c = nexp - W*log(nexp) - sum_i w_i*log(f(x_i))`

where `nexp` is the expected event yield of the channel, `W` the total
weight of the channel data and `f` the density of the observables. The
constraint terms contribute `-log(c)` each.
"""

import math
import numpy as np
from concurrent.futures import ThreadPoolExecutor


# -------------------------------------------------------------------------
class NLL :
  """Class representing the NLL of a model for a dataset

  The objective is bound to its dataset: a new objective must be
  created for a different dataset.

  With `offset=True`, the value of the first finite evaluation is
  subtracted from all values, so that differences between evaluations
  are unaffected.

  Attributes:
     model     (Model)   : the model
     data      (Dataset) : the dataset
     constrain (list)    : the parameters whose constraint terms are included
     offset    (bool)    : whether the value of the first evaluation is subtracted
     num_cpu   (int)     : number of threads used to evaluate the channel terms
  """

  def __init__(self, model : 'Model', data : 'Dataset', constrain : list = None, offset : bool = True, num_cpu : int = 1) :
    self.model = model
    self.ws = model.ws
    self.data = data
    self.constrain = list(constrain) if constrain is not None else []
    self.offset = offset
    self.num_cpu = num_cpu
    self.offset_value = None
    self.ncalls = 0
    self.channel_data = self.split_data()
    self.constraint_terms = [ c for c in model.constraints() if any([ self.ws.depends_on(c, par) for par in self.constrain ]) ]

  def split_data(self) -> dict :
    channels = self.model.channels()
    if not self.model.is_simultaneous() :
      if self.data.index is not None : raise ValueError("Cannot fit indexed dataset '%s' with single-channel model '%s'." % (self.data.name, self.model.config.name))
      return { None : self.data }
    if self.data.index is None : raise ValueError("Cannot fit dataset '%s' with simultaneous model '%s': the dataset has no channel index." % (self.data.name, self.model.config.name))
    split = self.data.split()
    unknown = [ label for label in split if not label in channels ]
    if len(unknown) > 0 : raise KeyError("Dataset '%s' contains entries for unknown channels %s." % (self.data.name, str(unknown)))
    return { label : split.get(label) for label in channels }

  def free_parameters(self) -> list :
    """Names of the parameters that are free in a fit of this objective

      Returns:
        the non-constant parameters the objective depends on, excluding
        observables and global observables
    """
    excluded = self.model.observables() + self.model.global_observables()
    pars = []
    for name in [ self.model.config.pdf ] + self.ws.dependents_of(self.model.config.pdf) :
      var = self.ws.var(name)
      if var is None or var.constant or name in excluded or name in pars : continue
      pars.append(name)
    return pars

  def channel_term(self, label, pdf) -> float :
    data = self.channel_data.get(label)
    term = 0
    if pdf.is_extended(self.ws) : term += pdf.expected_events(self.ws)
    if data is None or data.num_entries() == 0 : return term
    weights = data.weights()
    x = self.model.primary_observable(pdf)
    with np.errstate(divide='ignore', invalid='ignore') :
      log_dens = np.log(pdf.density_values(self.ws, self.model.observables(), x, data.values(x.name)))
      term -= np.sum(weights*log_dens)
      if pdf.is_extended(self.ws) : term -= np.sum(weights)*np.log(pdf.expected_events(self.ws))
    return term

  def constraint_term(self) -> float :
    with np.errstate(divide='ignore', invalid='ignore') :
      return -sum([ np.log(self.ws.eval(constraint)) for constraint in self.constraint_terms ])

  def raw_value(self) -> float :
    channels = self.model.channels()
    if self.num_cpu > 1 and len(channels) > 1 :
      with ThreadPoolExecutor(max_workers=self.num_cpu) as executor :
        terms = list(executor.map(lambda item : self.channel_term(*item), channels.items()))
    else :
      terms = [ self.channel_term(label, pdf) for label, pdf in channels.items() ]
    return float(sum(terms) + self.constraint_term())

  def value(self) -> float :
    """Value of the objective for the current parameter values

      Returns:
        the NLL value, offset if configured, or `+inf` if the value is not finite
    """
    self.ncalls += 1
    val = self.raw_value()
    if not math.isfinite(val) : return math.inf
    if self.offset :
      if self.offset_value is None : self.offset_value = val
      val -= self.offset_value
    return val

  def __call__(self, values : np.ndarray, pars : list) -> float :
    """Value of the objective for a set of parameter values

      The values are written to the workspace before evaluating.

      Args:
        values : the parameter values
        pars   : the parameter names, in the same order
      Returns:
        the NLL value
    """
    for par, val in zip(pars, values) : self.ws.var(par).assign(val)
    return self.value()

  def __str__(self) -> str :
    return "NLL of model '%s' for dataset '%s' (%d constraint terms)" % (self.model.config.name, self.data.name, len(self.constraint_terms))
