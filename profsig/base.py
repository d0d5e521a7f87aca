"""Module containing the building blocks shared by all profsig objects:

  * :class:`Serializable`, the base class for objects that load from / save to
    markup files. The JSON and YAML markup formats are supported.

  * :class:`RealVar`, representing a model *parameter* : a POI, a nuisance
    parameter, a global (auxiliary) observable or an observable. It stores
    the current value, the allowed range, the constant flag and, for
    observables, the binning.

  * :class:`Category`, representing the channel index of a simultaneous model.
"""

import numpy as np
import json, yaml
from abc import abstractmethod

# -------------------------------------------------------------------------
class Serializable :
  """An abstract base class for objects that load from / save to a markup file

  The class implements

  * load() and save() methods with filename arguments,

  * load_dict() and fill_dict() operating on dictionaries, which
    should be implemented in the derived classes.
  """

  def __init__(self) :
    pass

  def load(self, filename : str, flavor : str = None) -> 'Serializable' :
    """Load the object from a markup file

      Args:
        filename: name of the file to load from
        flavor  : input markup flavor (currently supported: 'json' [default], 'yaml')
      Returns:
        Serializable: self
    """
    if flavor is None : flavor = self.guess_flavor(filename, 'json')
    with open(filename, 'r') as fd :
      if flavor == 'json' :
        sdict = json.load(fd)
      elif flavor == 'yaml' :
        sdict = yaml.safe_load(fd)
      else :
        raise KeyError("Unknown markup flavor '%s', so far only 'json' or 'yaml' are supported" % flavor)
    return self.load_dict(sdict)

  def save(self, filename : str, flavor : str = None, payload : dict = None) -> 'Serializable' :
    """Save the object to a markup file

      Args:
        filename: name of the file to save to
        flavor  : output markup flavor (currently supported: 'json' [default], 'yaml')
        payload : the data that should be saved (default: the output of :meth:`dump_dict`)
      Returns:
        Serializable: self
    """
    if flavor is None : flavor = self.guess_flavor(filename, 'json')
    if flavor not in [ 'json', 'yaml' ] :
      raise KeyError("Unknown markup flavor '%s', so far only 'json' or 'yaml' are supported" % flavor)
    sdict = self.dump_dict() if payload is None else payload
    with open(filename, 'w') as fd :
      if flavor == 'json' :
        json.dump(sdict, fd, ensure_ascii=True, indent=3)
      else :
        yaml.dump(sdict, fd, sort_keys=False, default_flow_style=None, width=10000)
    return self

  @staticmethod
  def guess_flavor(filename : str, default : str) -> str :
    """Guess the markup flavor from the file extension

      Args:
        filename: name of the file
        default : return value if the guessing is unsuccessful
      Returns:
        str: the markup flavor (currently 'json' or 'yaml')
    """
    if filename.endswith('.json') : return 'json'
    if filename.endswith('.yaml') or filename.endswith('.yml') : return 'yaml'
    return default

  def dump_dict(self) -> dict :
    """Dumps the object as a dictionary of markup data

      Returns:
        dict: dictionary with the object contents
    """
    sdict = {}
    self.fill_dict(sdict)
    return sdict

  @classmethod
  def load_field(cls, key : str, dic : dict, default = None, types : list = []) :
    """Load information from a dictionary of markup data, using a provided key

      If the key is not present, `default` is returned instead. If the value
      type is not among the ones listed in `types`, a `TypeError` is raised.

      Args:
         key    : key to look up in the dictionary
         dic    : dictionary object in which to look up the key
         default: default value to return if `key` is absent in `dic`
         types  : list of allowed value types (default: [], allows all types)
      Returns:
        (depends): the value indexed by `key` in `dic`, or `default` if not present
    """
    if not key in dic : return default
    val = dic[key]
    if val is None : return val
    if not isinstance(types, list) : types = [ types ]
    if types != [] and not any([isinstance(val, t) for t in types]) :
      raise TypeError('Object at key %s in markup dictionary has type %s, not the expected %s' %
                      (key, val.__class__.__name__, '|'.join([t.__name__ for t in types])))
    return val

  @staticmethod
  def unnumpy(obj) :
    """Convert numpy objects to plain python types so they can be serialized

      Args:
         obj : object to convert
      Returns:
        (depends): the same object in serializable form
    """
    if isinstance(obj, np.integer) : return int(obj)
    if isinstance(obj, np.floating) : return float(obj)
    if isinstance(obj, (np.ndarray, list, tuple)) :
      return [ Serializable.unnumpy(element) for element in obj ]
    if isinstance(obj, dict) :
      return { key : Serializable.unnumpy(value) for key, value in obj.items() }
    return obj

  @abstractmethod
  def load_dict(self, sdict : dict) -> 'Serializable' :
    """Abstract method to load information from a dictionary of markup data

      Args:
        sdict: a dictionary containing markup data
      Returns:
        self
    """
    return self

  @abstractmethod
  def fill_dict(self, sdict : dict) :
    """Abstract method to save information to a dictionary of markup data

      Args:
         sdict: a dictionary containing markup data
    """
    pass


# -------------------------------------------------------------------------
class RealVar(Serializable) :
  """Class representing a real-valued model parameter

  The same class is used for all the parameter roles (POI, nuisance
  parameter, global observable, observable): the role is defined by
  the model configuration, not by the parameter itself.

  Setting the value through :meth:`set_value` clips it to the allowed
  range. Snapshots restore values through :meth:`assign`, which does not.

  Attributes:
     name      (str)   : the name of the parameter
     value     (float) : the current value
     min_value (float) : the lower bound of the allowed range (None if unbounded)
     max_value (float) : the upper bound of the allowed range (None if unbounded)
     constant  (bool)  : whether the parameter is held fixed in fits
     nbins     (int)   : number of bins over the range, for observables
     unit      (str)   : the unit in which the parameter is expressed
  """

  type_str = 'var'

  def __init__(self, name : str = '', value : float = 0, min_value : float = None, max_value : float = None,
               constant : bool = False, nbins : int = 100, unit : str = '') :
    super().__init__()
    self.name = name
    self.min_value = min_value
    self.max_value = max_value
    self.constant = constant
    self.nbins = nbins
    self.unit = unit
    self.value = float(value)

  def servers(self) -> list :
    return []

  def is_fundamental(self) -> bool :
    return True

  def eval(self, ws = None) -> float :
    return self.value

  def set_value(self, value : float) -> 'RealVar' :
    """Set the parameter value, clipped to the allowed range

      Args:
        value : the new value
      Returns:
        self
    """
    value = float(value)
    if self.min_value is not None and value < self.min_value : value = self.min_value
    if self.max_value is not None and value > self.max_value : value = self.max_value
    self.value = value
    return self

  def assign(self, value : float) -> 'RealVar' :
    self.value = float(value)
    return self

  def set_range(self, min_value : float, max_value : float) -> 'RealVar' :
    """Set the allowed range, moving the current value inside it if needed

      Args:
        min_value : the new lower bound (None for no bound)
        max_value : the new upper bound (None for no bound)
      Returns:
        self
    """
    if min_value is not None and max_value is not None and min_value > max_value :
      raise ValueError("Invalid range [%g, %g] for parameter '%s'." % (min_value, max_value, self.name))
    self.min_value = min_value
    self.max_value = max_value
    return self.set_value(self.value)

  def set_constant(self, constant : bool = True) -> 'RealVar' :
    self.constant = constant
    return self

  def bounds(self) -> tuple :
    return (self.min_value, self.max_value)

  def bin_edges(self) -> np.ndarray :
    """Return the bin boundaries of the parameter range

      Returns:
        an array of `nbins + 1` bin boundaries
    """
    if self.min_value is None or self.max_value is None :
      raise ValueError("Cannot define bins for parameter '%s', which has an open range." % self.name)
    return np.linspace(self.min_value, self.max_value, self.nbins + 1)

  def bin_centers(self) -> np.ndarray :
    edges = self.bin_edges()
    return (edges[1:] + edges[:-1])/2

  def bin_widths(self) -> np.ndarray :
    return np.diff(self.bin_edges())

  def __str__(self) -> str :
    return self.string_repr()

  def string_repr(self, verbosity : int = 1, pre_indent : str = '', indent : str = '   ') -> str :
    """Return a string representation of the object

      Args:
        verbosity : verbosity of the output
        pre_indent: indentation to add to all lines
        indent    : indentation to add to fields of this object
      Returns:
        the description string
    """
    unit = ' %s' % self.unit if self.unit is not None and self.unit != '' else ''
    lo = '-inf' if self.min_value is None else '%g' % self.min_value
    hi = '+inf' if self.max_value is None else '%g' % self.max_value
    rep = '%s%-20s = %12g%s [%s, %s]%s' % (pre_indent, self.name, self.value, unit, lo, hi, ' C' if self.constant else '')
    if verbosity >= 2 : rep += '\n%s%snbins = %d' % (pre_indent, indent, self.nbins)
    return rep

  def load_dict(self, sdict : dict) -> 'RealVar' :
    """Load object information from a dictionary of markup data

      Args:
        sdict: a dictionary containing markup data
      Returns:
        self
    """
    self.name      = self.load_field('name'     , sdict, self.name, str)
    self.value     = float(self.load_field('value', sdict, 0, [int, float]))
    self.min_value = self.load_field('min_value', sdict, None, [int, float])
    self.max_value = self.load_field('max_value', sdict, None, [int, float])
    self.constant  = self.load_field('constant' , sdict, False, bool)
    self.nbins     = self.load_field('nbins'    , sdict, 100, int)
    self.unit      = self.load_field('unit'     , sdict, '', str)
    return self

  def fill_dict(self, sdict : dict) :
    """Save information to a dictionary of markup data

      Args:
         sdict: a dictionary containing markup data
    """
    sdict['type'] = self.type_str
    sdict['name'] = self.name
    sdict['value'] = self.unnumpy(self.value)
    if self.min_value is not None : sdict['min_value'] = self.unnumpy(self.min_value)
    if self.max_value is not None : sdict['max_value'] = self.unnumpy(self.max_value)
    if self.constant : sdict['constant'] = True
    if self.nbins != 100 : sdict['nbins'] = self.nbins
    if self.unit != '' : sdict['unit'] = self.unit


# -------------------------------------------------------------------------
class Category(Serializable) :
  """Class representing a channel index category

  Attributes:
     name   (str)  : the category name
     labels (list) : the ordered category labels
     index  (int)  : the index of the current label
  """

  type_str = 'category'

  def __init__(self, name : str = '', labels : list = None) :
    super().__init__()
    self.name = name
    self.labels = list(labels) if labels is not None else []
    self.index = 0

  def servers(self) -> list :
    return []

  def is_fundamental(self) -> bool :
    return True

  def set_index(self, index : int) -> 'Category' :
    if index < 0 or index >= len(self.labels) :
      raise IndexError("Index %d out of range for category '%s' with %d labels." % (index, self.name, len(self.labels)))
    self.index = index
    return self

  def label(self) -> str :
    return self.labels[self.index]

  def __str__(self) -> str :
    return '%s : { %s }' % (self.name, ', '.join(self.labels))

  def load_dict(self, sdict : dict) -> 'Category' :
    self.name = self.load_field('name', sdict, self.name, str)
    self.labels = self.load_field('labels', sdict, [], list)
    self.index = 0
    return self

  def fill_dict(self, sdict : dict) :
    sdict['type'] = self.type_str
    sdict['name'] = self.name
    sdict['labels'] = list(self.labels)
