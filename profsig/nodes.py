"""Module containing the nodes of the model graph

The model is a graph of named nodes stored in a :class:`profsig.workspace.Workspace`.
Nodes refer to their servers by name, so that the graph itself is a plain
data structure and all values are computed against the workspace passed
as argument (no node stores a pointer to another node).

Server references are either node names or plain numbers; the latter
are useful for fixed widths and coefficients.

The following classes are defined:

  * :class:`Node` : the base class for all non-fundamental nodes.

  * Real-valued functions : :class:`LinearCombination`, :class:`ProductRatio`
    and :class:`Exponential`.

  * Probability densities, deriving from :class:`Pdf` :

    * the *elementary* constraint forms :class:`Gaussian`, :class:`LogNormal`,
      :class:`Gamma`, :class:`Poisson` and :class:`BifurGauss`, listed in
      `ELEMENTARY_KINDS`.

    * :class:`Uniform`, a flat density over the range of its variable.

    * :class:`BinnedPdf`, an extended density defined by the per-bin yields of a
      set of samples.

    * the composite densities :class:`ProdPdf` and :class:`SimultaneousPdf`.

Parameters (:class:`profsig.base.RealVar`) and categories
(:class:`profsig.base.Category`) are the fundamental nodes of the graph.
"""

import math
import numpy as np
import scipy.special
from abc import abstractmethod

from .base import Serializable, RealVar, Category


def ref_value(ws, ref) -> float :
  """Value of a server reference, either a number or a node name"""
  if isinstance(ref, (int, float)) : return float(ref)
  return ws.eval(ref)

def ref_names(*refs) -> list :
  """Names among a list of server references, skipping numbers"""
  return [ ref for ref in refs if isinstance(ref, str) ]


# -------------------------------------------------------------------------
class Node(Serializable) :
  """Base class for non-fundamental nodes

  Attributes:
     name (str) : the node name
  """

  type_str = None

  def __init__(self, name : str = '') :
    super().__init__()
    self.name = name

  def servers(self) -> list :
    """Names of the nodes on which this one depends directly

      Returns:
        the list of server names
    """
    return []

  def is_fundamental(self) -> bool :
    return False

  def is_pdf(self) -> bool :
    return False

  @abstractmethod
  def eval(self, ws) -> float :
    """Compute the node value for the current parameter values

      Args:
        ws : the workspace holding the parameter values
      Returns:
        the node value
    """
    pass

  def __str__(self) -> str :
    return '%s %s(%s)' % (self.type_str, self.name, ', '.join(self.servers()))

  def load_dict(self, sdict : dict) -> 'Node' :
    self.name = self.load_field('name', sdict, self.name, str)
    return self

  def fill_dict(self, sdict : dict) :
    sdict['type'] = self.type_str
    sdict['name'] = self.name

  @classmethod
  def instantiate(cls, sdict : dict, load_data : bool = True) :
    """Instantiate a node object from markup data

      The class is chosen from the 'type' field of the markup, which should
      match the `type_str` attribute of one of the node classes.

      Args:
         sdict: dictionary containing markup data
         load_data: if `True`, also initialize the node from the markup
      Returns:
         the new node
    """
    if not 'type' in sdict : raise ValueError("No 'type' field in markup for node '%s'" % sdict.get('name', ''))
    node_classes = { node_class.type_str : node_class for node_class in NODE_CLASSES }
    if not sdict['type'] in node_classes : raise ValueError("Unsupported node type '%s'" % sdict['type'])
    node = node_classes[sdict['type']]()
    if load_data : node.load_dict(sdict)
    return node


# -------------------------------------------------------------------------
class LinearCombination(Node) :
  """Function computing `nominal + sum_i coeff_i*par_i`

  Attributes:
     nominal (float) : the constant term
     coeffs  (dict)  : { server : coefficient } pairs
  """

  type_str = 'linear_combination'

  def __init__(self, name : str = '', nominal : float = 0, coeffs : dict = None) :
    super().__init__(name)
    self.nominal = nominal
    self.coeffs = coeffs if coeffs is not None else {}

  def servers(self) -> list :
    return list(self.coeffs)

  def eval(self, ws) -> float :
    return self.nominal + sum([ coeff*ws.eval(par) for par, coeff in self.coeffs.items() ])

  def load_dict(self, sdict : dict) -> 'LinearCombination' :
    super().load_dict(sdict)
    self.nominal = self.load_field('nominal', sdict, 0, [int, float])
    self.coeffs = self.load_field('coeffs', sdict, {}, dict)
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['nominal'] = self.unnumpy(self.nominal)
    sdict['coeffs'] = self.unnumpy(self.coeffs)


# -------------------------------------------------------------------------
class ProductRatio(Node) :
  """Function computing `(p1*p2*...)/(q1*q2*...)`

  Attributes:
     numerator   (list) : references multiplied in the numerator
     denominator (list) : references multiplied in the denominator
  """

  type_str = 'product_ratio'

  def __init__(self, name : str = '', numerator : list = None, denominator : list = None) :
    super().__init__(name)
    self.numerator = numerator if numerator is not None else []
    self.denominator = denominator if denominator is not None else []

  def servers(self) -> list :
    return ref_names(*self.numerator, *self.denominator)

  def eval(self, ws) -> float :
    num = np.prod([ ref_value(ws, ref) for ref in self.numerator ]) if len(self.numerator) > 0 else 1
    den = np.prod([ ref_value(ws, ref) for ref in self.denominator ]) if len(self.denominator) > 0 else 1
    return float(num/den)

  def load_dict(self, sdict : dict) -> 'ProductRatio' :
    super().load_dict(sdict)
    self.numerator = self.load_field('numerator', sdict, [], list)
    self.denominator = self.load_field('denominator', sdict, [], list)
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['numerator'] = self.unnumpy(self.numerator)
    if len(self.denominator) > 0 : sdict['denominator'] = self.unnumpy(self.denominator)


# -------------------------------------------------------------------------
class Exponential(Node) :
  """Function computing `base**exponent`, used for log-normal yield variations

  Attributes:
     base     : reference to the base (typically a fixed number, e.g. 1.1 for a 10% impact)
     exponent : reference to the exponent (typically a nuisance parameter)
  """

  type_str = 'exponential'

  def __init__(self, name : str = '', base = math.e, exponent = 0) :
    super().__init__(name)
    self.base = base
    self.exponent = exponent

  def servers(self) -> list :
    return ref_names(self.base, self.exponent)

  def eval(self, ws) -> float :
    return ref_value(ws, self.base)**ref_value(ws, self.exponent)

  def load_dict(self, sdict : dict) -> 'Exponential' :
    super().load_dict(sdict)
    self.base = self.load_field('base', sdict, math.e, [str, int, float])
    self.exponent = self.load_field('exponent', sdict, 0, [str, int, float])
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['base'] = self.unnumpy(self.base)
    sdict['exponent'] = self.unnumpy(self.exponent)


# -------------------------------------------------------------------------
class Pdf(Node) :
  """Base class for probability densities

  Densities provide three views of their value:

  * :meth:`eval` : the value for the current parameter values, including
    all factors.

  * :meth:`density_values` : the density normalized over the observables,
    for an array of values of the primary observable. Factors that do
    not depend on the observables are not included.

  * :meth:`expected_events` : the expected event yield, for extended densities.
  """

  def is_pdf(self) -> bool :
    return True

  def is_extended(self, ws) -> bool :
    return False

  def expected_events(self, ws) -> float :
    raise ValueError("Density '%s' of type '%s' does not define an expected event yield." % (self.name, self.type_str))

  def depends_on_any(self, ws, names : list) -> bool :
    return any([ ws.depends_on(self, name) for name in names ])

  def is_constraint(self, ws, obs : list, nuis : list) -> bool :
    """Tests if the density constrains nuisance parameters

      A density is a constraint term if it does not depend on any
      observable, but depends on at least one nuisance parameter.

      Args:
        ws   : the workspace holding the graph
        obs  : names of the observables
        nuis : names of the nuisance parameters
      Returns:
        True if the density is a constraint term
    """
    return not self.depends_on_any(ws, obs) and self.depends_on_any(ws, nuis)

  def constraints(self, ws, obs : list, nuis : list) -> list :
    """Constraint dependencies of the density

      For a simple density, this is the density itself if it is a
      constraint term, and nothing otherwise. Composite densities
      reimplement this to return the constraint terms among their
      components.

      Args:
        ws   : the workspace holding the graph
        obs  : names of the observables
        nuis : names of the nuisance parameters
      Returns:
        the names of the constraint densities
    """
    return [ self.name ] if self.is_constraint(ws, obs, nuis) else []

  @abstractmethod
  def density_values(self, ws, obs : list, x : RealVar, xs : np.ndarray) -> np.ndarray :
    """Density normalized over the observables, at several values of the primary observable

      Args:
        ws  : the workspace holding the parameter values
        obs : names of the observables
        x   : the primary observable
        xs  : values of the primary observable at which to compute the density
      Returns:
        the array of density values
    """
    pass


# -------------------------------------------------------------------------
class UnivariatePdf(Pdf) :
  """Base class for densities of a single variable `x`

  Derived classes implement :meth:`formula`, which computes the density
  for an array of `x` values with the other parameters set to their
  current values.

  Attributes:
     x (str) : name of the variable of the density
  """

  def __init__(self, name : str = '', x : str = '') :
    super().__init__(name)
    self.x = x

  def parameters(self) -> list :
    return []

  def servers(self) -> list :
    return ref_names(self.x, *self.parameters())

  @abstractmethod
  def formula(self, ws, xs : np.ndarray) -> np.ndarray :
    pass

  def eval(self, ws) -> float :
    return float(self.formula(ws, np.array([ ref_value(ws, self.x) ]))[0])

  def density_values(self, ws, obs : list, x : RealVar, xs : np.ndarray) -> np.ndarray :
    if not self.depends_on_any(ws, obs) : return np.ones(len(xs))
    if self.x != x.name :
      raise ValueError("Density '%s' depends on the observables through '%s', not through primary observable '%s'." % (self.name, self.x, x.name))
    return self.formula(ws, np.asarray(xs, dtype=float))

  def load_dict(self, sdict : dict) -> 'UnivariatePdf' :
    super().load_dict(sdict)
    self.x = self.load_field('x', sdict, '', str)
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['x'] = self.x


# -------------------------------------------------------------------------
class Gaussian(UnivariatePdf) :
  """Gaussian density of `x`, with parameters `mean` and `sigma`"""

  type_str = 'gaussian'

  def __init__(self, name : str = '', x : str = '', mean = 0, sigma = 1) :
    super().__init__(name, x)
    self.mean = mean
    self.sigma = sigma

  def parameters(self) -> list :
    return [ self.mean, self.sigma ]

  def formula(self, ws, xs : np.ndarray) -> np.ndarray :
    mean, sigma = ref_value(ws, self.mean), ref_value(ws, self.sigma)
    return np.exp(-0.5*((xs - mean)/sigma)**2)/(sigma*math.sqrt(2*math.pi))

  def load_dict(self, sdict : dict) -> 'Gaussian' :
    super().load_dict(sdict)
    self.mean  = self.load_field('mean' , sdict, 0, [str, int, float])
    self.sigma = self.load_field('sigma', sdict, 1, [str, int, float])
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['mean']  = self.unnumpy(self.mean)
    sdict['sigma'] = self.unnumpy(self.sigma)


# -------------------------------------------------------------------------
class LogNormal(UnivariatePdf) :
  """Log-normal density of `x`, with median `m0` and shape parameter `k`"""

  type_str = 'lognormal'

  def __init__(self, name : str = '', x : str = '', m0 = 1, k = math.e) :
    super().__init__(name, x)
    self.m0 = m0
    self.k = k

  def parameters(self) -> list :
    return [ self.m0, self.k ]

  def formula(self, ws, xs : np.ndarray) -> np.ndarray :
    m0, ln_k = ref_value(ws, self.m0), math.log(ref_value(ws, self.k))
    with np.errstate(divide='ignore', invalid='ignore') :
      vals = np.exp(-0.5*(np.log(xs/m0)/ln_k)**2)/(xs*ln_k*math.sqrt(2*math.pi))
    return np.where(xs > 0, vals, 0)

  def load_dict(self, sdict : dict) -> 'LogNormal' :
    super().load_dict(sdict)
    self.m0 = self.load_field('m0', sdict, 1, [str, int, float])
    self.k  = self.load_field('k' , sdict, math.e, [str, int, float])
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['m0'] = self.unnumpy(self.m0)
    sdict['k']  = self.unnumpy(self.k)


# -------------------------------------------------------------------------
class Gamma(UnivariatePdf) :
  """Gamma density of `x`, with shape `gamma`, scale `beta` and offset `mu`"""

  type_str = 'gamma'

  def __init__(self, name : str = '', x : str = '', gamma = 1, beta = 1, mu = 0) :
    super().__init__(name, x)
    self.gamma = gamma
    self.beta = beta
    self.mu = mu

  def parameters(self) -> list :
    return [ self.gamma, self.beta, self.mu ]

  def formula(self, ws, xs : np.ndarray) -> np.ndarray :
    gamma, beta, mu = ref_value(ws, self.gamma), ref_value(ws, self.beta), ref_value(ws, self.mu)
    u = xs - mu
    with np.errstate(divide='ignore', invalid='ignore') :
      log_vals = (gamma - 1)*np.log(u) - u/beta - scipy.special.gammaln(gamma) - gamma*math.log(beta)
    return np.where(u > 0, np.exp(log_vals), 0)

  def load_dict(self, sdict : dict) -> 'Gamma' :
    super().load_dict(sdict)
    self.gamma = self.load_field('gamma', sdict, 1, [str, int, float])
    self.beta  = self.load_field('beta' , sdict, 1, [str, int, float])
    self.mu    = self.load_field('mu'   , sdict, 0, [str, int, float])
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['gamma'] = self.unnumpy(self.gamma)
    sdict['beta']  = self.unnumpy(self.beta)
    sdict['mu']    = self.unnumpy(self.mu)


# -------------------------------------------------------------------------
class Poisson(UnivariatePdf) :
  """Poisson density of `x` with expectation `mean`, continuous in `x`"""

  type_str = 'poisson'

  def __init__(self, name : str = '', x : str = '', mean = 1) :
    super().__init__(name, x)
    self.mean = mean

  def parameters(self) -> list :
    return [ self.mean ]

  def formula(self, ws, xs : np.ndarray) -> np.ndarray :
    mean = ref_value(ws, self.mean)
    if mean <= 0 : return np.zeros(len(xs))
    with np.errstate(invalid='ignore') :
      vals = np.exp(xs*math.log(mean) - mean - scipy.special.gammaln(xs + 1))
    return np.where(xs >= 0, vals, 0)

  def load_dict(self, sdict : dict) -> 'Poisson' :
    super().load_dict(sdict)
    self.mean = self.load_field('mean', sdict, 1, [str, int, float])
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['mean'] = self.unnumpy(self.mean)


# -------------------------------------------------------------------------
class BifurGauss(UnivariatePdf) :
  """Bifurcated Gaussian density of `x`, with widths `sigma_l` below and `sigma_r` above `mean`"""

  type_str = 'bifurgauss'

  def __init__(self, name : str = '', x : str = '', mean = 0, sigma_l = 1, sigma_r = 1) :
    super().__init__(name, x)
    self.mean = mean
    self.sigma_l = sigma_l
    self.sigma_r = sigma_r

  def parameters(self) -> list :
    return [ self.mean, self.sigma_l, self.sigma_r ]

  def formula(self, ws, xs : np.ndarray) -> np.ndarray :
    mean, sigma_l, sigma_r = ref_value(ws, self.mean), ref_value(ws, self.sigma_l), ref_value(ws, self.sigma_r)
    sigmas = np.where(xs < mean, sigma_l, sigma_r)
    return np.exp(-0.5*((xs - mean)/sigmas)**2)*2/(math.sqrt(2*math.pi)*(sigma_l + sigma_r))

  def load_dict(self, sdict : dict) -> 'BifurGauss' :
    super().load_dict(sdict)
    self.mean    = self.load_field('mean'   , sdict, 0, [str, int, float])
    self.sigma_l = self.load_field('sigma_l', sdict, 1, [str, int, float])
    self.sigma_r = self.load_field('sigma_r', sdict, 1, [str, int, float])
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['mean']    = self.unnumpy(self.mean)
    sdict['sigma_l'] = self.unnumpy(self.sigma_l)
    sdict['sigma_r'] = self.unnumpy(self.sigma_r)


# -------------------------------------------------------------------------
class Uniform(UnivariatePdf) :
  """Flat density over the range of `x`"""

  type_str = 'uniform'

  def formula(self, ws, xs : np.ndarray) -> np.ndarray :
    var = ws.var(self.x)
    if var is None or var.min_value is None or var.max_value is None :
      raise ValueError("Uniform density '%s' requires a variable with a closed range." % self.name)
    inside = (xs >= var.min_value) & (xs <= var.max_value)
    return np.where(inside, 1/(var.max_value - var.min_value), 0)


# -------------------------------------------------------------------------
class BinnedPdf(Pdf) :
  """Extended binned density defined by a set of samples

  The binning is that of the observable `x` (see :meth:`profsig.base.RealVar.bin_edges`).
  Each sample is specified as a dict with the following fields:

  * `name`  : the sample name
  * `yields`: the per-bin nominal yields (one value per bin of `x`)
  * `norm`  : a reference to the normalization factor (optional, default 1)

  The expected yield in each bin is the sum of the sample yields multiplied
  by their normalizations.

  Attributes:
     x       (str)  : name of the observable
     samples (list) : the sample specifications
  """

  type_str = 'binned'

  def __init__(self, name : str = '', x : str = '', samples : list = None) :
    super().__init__(name)
    self.x = x
    self.samples = samples if samples is not None else []

  def servers(self) -> list :
    return ref_names(self.x, *[ sample['norm'] for sample in self.samples if 'norm' in sample ])

  def is_extended(self, ws) -> bool :
    return True

  def bin_yields(self, ws) -> np.ndarray :
    """Expected yields in each bin of the observable

      Args:
        ws : the workspace holding the parameter values
      Returns:
        the array of bin yields
    """
    x = ws.var(self.x)
    total = np.zeros(x.nbins)
    for sample in self.samples :
      yields = np.array(sample['yields'], dtype=float)
      if yields.size != x.nbins :
        raise ValueError("Sample '%s' of density '%s' has %d yields, but observable '%s' has %d bins."
                         % (sample.get('name', ''), self.name, yields.size, self.x, x.nbins))
      total += ref_value(ws, sample.get('norm', 1))*yields
    return total

  def expected_events(self, ws) -> float :
    return float(np.sum(self.bin_yields(ws)))

  def density_values(self, ws, obs : list, x : RealVar, xs : np.ndarray) -> np.ndarray :
    if x.name != self.x :
      raise ValueError("Density '%s' is binned in '%s', not in primary observable '%s'." % (self.name, self.x, x.name))
    edges = x.bin_edges()
    yields = self.bin_yields(ws)
    xs = np.asarray(xs, dtype=float)
    indices = np.clip(np.searchsorted(edges, xs, side='right') - 1, 0, x.nbins - 1)
    inside = (xs >= edges[0]) & (xs <= edges[-1])
    with np.errstate(divide='ignore', invalid='ignore') :
      vals = yields[indices]/(np.sum(yields)*np.diff(edges)[indices])
    return np.where(inside, vals, 0)

  def eval(self, ws) -> float :
    return float(self.density_values(ws, [ self.x ], ws.var(self.x), np.array([ ws.eval(self.x) ]))[0])

  def load_dict(self, sdict : dict) -> 'BinnedPdf' :
    super().load_dict(sdict)
    self.x = self.load_field('x', sdict, '', str)
    self.samples = self.load_field('samples', sdict, [], list)
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['x'] = self.x
    sdict['samples'] = self.unnumpy(self.samples)


# -------------------------------------------------------------------------
class ProdPdf(Pdf) :
  """Product of densities

  Typically used to multiply the density of the observables in a channel
  by the constraint terms of the nuisance parameters.

  Attributes:
     factors (list) : names of the factor densities
  """

  type_str = 'product'

  def __init__(self, name : str = '', factors : list = None) :
    super().__init__(name)
    self.factors = factors if factors is not None else []

  def servers(self) -> list :
    return list(self.factors)

  def eval(self, ws) -> float :
    return float(np.prod([ ws.eval(factor) for factor in self.factors ]))

  def extended_factor(self, ws) -> Pdf :
    return next((ws.node(factor) for factor in self.factors if ws.node(factor).is_extended(ws)), None)

  def is_extended(self, ws) -> bool :
    return self.extended_factor(ws) is not None

  def expected_events(self, ws) -> float :
    factor = self.extended_factor(ws)
    if factor is None : return super().expected_events(ws)
    return factor.expected_events(ws)

  def density_values(self, ws, obs : list, x : RealVar, xs : np.ndarray) -> np.ndarray :
    vals = np.ones(len(xs))
    for factor in self.factors :
      pdf = ws.node(factor)
      if pdf.depends_on_any(ws, obs) : vals = vals*pdf.density_values(ws, obs, x, xs)
    return vals

  def constraints(self, ws, obs : list, nuis : list) -> list :
    constraints = []
    for factor in self.factors :
      pdf = ws.node(factor)
      if pdf.depends_on_any(ws, obs) :
        factor_constraints = pdf.constraints(ws, obs, nuis)
      else :
        factor_constraints = [ factor ] if pdf.is_constraint(ws, obs, nuis) else []
      for constraint in factor_constraints :
        if constraint not in constraints : constraints.append(constraint)
    return constraints

  def load_dict(self, sdict : dict) -> 'ProdPdf' :
    super().load_dict(sdict)
    self.factors = self.load_field('factors', sdict, [], list)
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['factors'] = list(self.factors)


# -------------------------------------------------------------------------
class SimultaneousPdf(Pdf) :
  """Per-channel composite density

  The channel is selected by the current label of the index category.

  Attributes:
     index    (str)  : name of the index category
     channels (dict) : { label : density name } pairs, one per channel
  """

  type_str = 'simultaneous'

  def __init__(self, name : str = '', index : str = '', channels : dict = None) :
    super().__init__(name)
    self.index = index
    self.channels = channels if channels is not None else {}

  def servers(self) -> list :
    return [ self.index ] + list(self.channels.values())

  def channel_pdf(self, ws, label : str) -> Pdf :
    if not label in self.channels :
      raise KeyError("No channel with label '%s' in simultaneous density '%s'." % (label, self.name))
    return ws.node(self.channels[label])

  def eval(self, ws) -> float :
    return self.channel_pdf(ws, ws.node(self.index).label()).eval(ws)

  def density_values(self, ws, obs : list, x : RealVar, xs : np.ndarray) -> np.ndarray :
    return self.channel_pdf(ws, ws.node(self.index).label()).density_values(ws, obs, x, xs)

  def constraints(self, ws, obs : list, nuis : list) -> list :
    constraints = []
    for channel in self.channels.values() :
      for constraint in ws.node(channel).constraints(ws, obs, nuis) :
        if constraint not in constraints : constraints.append(constraint)
    return constraints

  def load_dict(self, sdict : dict) -> 'SimultaneousPdf' :
    super().load_dict(sdict)
    self.index = self.load_field('index', sdict, '', str)
    self.channels = self.load_field('channels', sdict, {}, dict)
    return self

  def fill_dict(self, sdict : dict) :
    super().fill_dict(sdict)
    sdict['index'] = self.index
    sdict['channels'] = dict(self.channels)


ELEMENTARY_KINDS = [ Gaussian.type_str, LogNormal.type_str, Gamma.type_str, Poisson.type_str, BifurGauss.type_str ]

NODE_CLASSES = [ RealVar, Category, LinearCombination, ProductRatio, Exponential,
                 Gaussian, LogNormal, Gamma, Poisson, BifurGauss, Uniform, BinnedPdf, ProdPdf, SimultaneousPdf ]
