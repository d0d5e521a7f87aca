"""Module containing the workspace class

  * :class:`Workspace` : the container holding a complete statistical
    model bundle: the parameters and other nodes of the model graph,
    the datasets, the model configurations, and the named snapshots
    of parameter values.

The workspace is the single parameter store of a computation: all the
other classes read and write parameter values through the workspace
passed to them, and never keep their own copies.

Snapshots are stored as read-only { name : value } mappings captured at
save time. Loading a snapshot that does not exist is not an error: the
method returns `False`, so that callers can create it on the spot (see
:meth:`Workspace.load_or_save_snapshot`).
"""

from types import MappingProxyType

from .base import Serializable, RealVar, Category
from .nodes import Node
from .data import Dataset
from .model import ModelConfig


# -------------------------------------------------------------------------
class Workspace(Serializable) :
  """Class representing a model bundle

  Attributes:
     name          (str)  : the workspace name
     nodes         (dict) : the nodes of the model graph, as { name : node } pairs
     datasets      (dict) : the datasets, as { name : :class:`Dataset` } pairs
     model_configs (dict) : the model configurations, as { name : :class:`ModelConfig` } pairs
     snapshots     (dict) : the named snapshots, as { name : { par name : value } } pairs
     sets          (dict) : named lists of node names
  """

  def __init__(self, name : str = '', verbosity : int = 0) :
    super().__init__()
    self.name = name
    self.nodes = {}
    self.datasets = {}
    self.model_configs = {}
    self.snapshots = {}
    self.sets = {}
    self.verbosity = verbosity
    self._closures = {}

  @staticmethod
  def create(filename : str, name : str = None, flavor : str = None, verbosity : int = 0) -> 'Workspace' :
    """Shortcut method to instantiate a workspace from a markup file

      The file contains a list of workspaces under the 'workspaces' key;
      the one with the specified name is loaded (the first one if no
      name is given).

      Args:
         filename : name of a markup file containing the workspace definition
         name     : name of the workspace to load
         flavor   : input markup flavor (currently supported: 'json' [default], 'yaml')
         verbosity: level of verbosity (0=minimal)
      Returns:
         the created workspace
    """
    ws = Workspace(name, verbosity=verbosity)
    return ws.load(filename, flavor)

  def var(self, name : str) -> RealVar :
    node = self.nodes.get(name)
    return node if isinstance(node, RealVar) else None

  def cat(self, name : str) -> Category :
    node = self.nodes.get(name)
    return node if isinstance(node, Category) else None

  def node(self, name : str) :
    return self.nodes.get(name)

  def data(self, name : str) -> Dataset :
    return self.datasets.get(name)

  def obj(self, name : str) -> ModelConfig :
    return self.model_configs.get(name)

  def eval(self, name : str) -> float :
    """Value of a node for the current parameter values

      Args:
        name : the name of the node
      Returns:
        the node value
    """
    if not name in self.nodes : raise KeyError("Node '%s' not found in workspace '%s'." % (name, self.name))
    return self.nodes[name].eval(self)

  def add(self, node, replace : bool = False) :
    """Register a node in the workspace

      Args:
        node    : the node to add (a parameter, category, function or density)
        replace : if `True`, replace an existing node with the same name
      Returns:
        the added node
    """
    if node.name in self.nodes and not replace :
      raise KeyError("Node '%s' already exists in workspace '%s'." % (node.name, self.name))
    self.nodes[node.name] = node
    self._closures = {}
    return node

  def add_data(self, data : Dataset, replace : bool = False) -> Dataset :
    if data.name in self.datasets and not replace :
      raise KeyError("Dataset '%s' already exists in workspace '%s'." % (data.name, self.name))
    self.datasets[data.name] = data
    return data

  def add_model_config(self, config : ModelConfig, replace : bool = False) -> ModelConfig :
    if config.name in self.model_configs and not replace :
      raise KeyError("Model configuration '%s' already exists in workspace '%s'." % (config.name, self.name))
    self.model_configs[config.name] = config
    return config

  def define_set(self, name : str, names : list) :
    self.sets[name] = list(names)

  # Graph queries

  def _name(self, node) -> str :
    return node if isinstance(node, str) else node.name

  def servers_of(self, node) -> list :
    name = self._name(node)
    if not name in self.nodes : raise KeyError("Node '%s' not found in workspace '%s'." % (name, self.name))
    return self.nodes[name].servers()

  def dependents_of(self, node) -> list :
    """All the nodes on which a node depends, directly or through other nodes

      The graph is traversed depth-first from the node; cycles are
      tolerated, each node being visited once.

      Args:
        node : the node, or its name
      Returns:
        the names of the dependencies, in discovery order, not including the node itself
    """
    name = self._name(node)
    if name in self._closures : return self._closures[name]
    found = []
    stack = list(reversed(self.servers_of(name)))
    while len(stack) > 0 :
      server = stack.pop()
      if server in found or server == name : continue
      found.append(server)
      if server in self.nodes : stack.extend(reversed(self.nodes[server].servers()))
    self._closures[name] = found
    return found

  def depends_on(self, node, target) -> bool :
    name, target_name = self._name(node), self._name(target)
    return name == target_name or target_name in self.dependents_of(name)

  def components_of(self, node) -> list :
    """The non-fundamental nodes of the tree below a node

      Args:
        node : the node, or its name
      Returns:
        the names of the components, starting with the node itself
    """
    name = self._name(node)
    return [ name ] + [ dep for dep in self.dependents_of(name) if dep in self.nodes and not self.nodes[dep].is_fundamental() ]

  # Snapshots

  def save_snapshot(self, name : str, names : list) -> MappingProxyType :
    """Save the current values of a set of parameters as a named snapshot

      An existing snapshot with the same name is overwritten.

      Args:
        name  : the snapshot name
        names : the names of the parameters to capture
      Returns:
        the snapshot, as a read-only { name : value } mapping
    """
    values = {}
    for par in names :
      var = self.var(par)
      if var is None : raise KeyError("Cannot save parameter '%s' to snapshot '%s': no such parameter in workspace '%s'." % (par, name, self.name))
      values[par] = var.value
    self.snapshots[name] = MappingProxyType(values)
    if self.verbosity >= 2 : print("INFO: saved snapshot '%s' with %d parameters." % (name, len(values)))
    return self.snapshots[name]

  def load_snapshot(self, name : str) -> bool :
    """Restore the parameter values stored in a named snapshot

      Args:
        name : the snapshot name
      Returns:
        `True` if the snapshot was found and loaded, `False` otherwise
    """
    if not name in self.snapshots : return False
    for par, value in self.snapshots[name].items() :
      self.var(par).assign(value)
    if self.verbosity >= 2 : print("INFO: loaded snapshot '%s'." % name)
    return True

  def has_snapshot(self, name : str) -> bool :
    return name in self.snapshots

  def load_or_save_snapshot(self, name : str, names : list) -> bool :
    """Load a snapshot, creating it from the current values if it does not exist

      Args:
        name  : the snapshot name
        names : the parameters to capture, if the snapshot needs to be created
      Returns:
        `True` if an existing snapshot was loaded, `False` if it was created
    """
    if self.load_snapshot(name) : return True
    self.save_snapshot(name, names)
    return False

  def string_repr(self, verbosity : int = 1, pre_indent : str = '', indent : str = '   ') -> str :
    rep = "%sWorkspace '%s'" % (pre_indent, self.name)
    rep += '\n%s%sParameters:' % (pre_indent, indent)
    for node in self.nodes.values() :
      if isinstance(node, RealVar) : rep += '\n' + node.string_repr(verbosity, pre_indent + 2*indent)
    if verbosity >= 2 :
      rep += '\n%s%sNodes:' % (pre_indent, indent)
      for node in self.nodes.values() :
        if not node.is_fundamental() : rep += '\n%s%s%s' % (pre_indent, 2*indent, str(node))
    rep += '\n%s%sDatasets: %s' % (pre_indent, indent, ', '.join(self.datasets))
    rep += '\n%s%sSnapshots: %s' % (pre_indent, indent, ', '.join(self.snapshots))
    return rep

  def __str__(self) -> str :
    return self.string_repr()

  def load_dict(self, sdict : dict) -> 'Workspace' :
    """Load object information from a dictionary of markup data

      If the markup contains a list of workspaces under the 'workspaces'
      key, the one matching the workspace name is selected.

      Args:
        sdict: a dictionary containing markup data
      Returns:
        self
    """
    if 'workspaces' in sdict :
      wsdicts = self.load_field('workspaces', sdict, [], list)
      if self.name is None or self.name == '' :
        if len(wsdicts) == 0 : raise KeyError('No workspace found in markup data.')
        sdict = wsdicts[0]
      else :
        try :
          sdict = next(wsdict for wsdict in wsdicts if wsdict.get('name') == self.name)
        except StopIteration :
          raise KeyError("Workspace '%s' not found, available workspaces are %s." % (self.name, str([ wsdict.get('name') for wsdict in wsdicts ])))
    self.name = self.load_field('name', sdict, '', str)
    self.nodes = {}
    self._closures = {}
    for node_dict in self.load_field('nodes', sdict, [], list) :
      self.add(Node.instantiate(node_dict))
    self.model_configs = {}
    for config_dict in self.load_field('model_configs', sdict, [], list) :
      self.add_model_config(ModelConfig().load_dict(config_dict))
    self.datasets = {}
    for data_dict in self.load_field('datasets', sdict, [], list) :
      self.add_data(Dataset().load_dict(data_dict))
    self.snapshots = { name : MappingProxyType(dict(values)) for name, values in self.load_field('snapshots', sdict, {}, dict).items() }
    self.sets = { name : list(names) for name, names in self.load_field('sets', sdict, {}, dict).items() }
    return self

  def fill_dict(self, sdict : dict) :
    """Save information to a dictionary of markup data

      Args:
         sdict: a dictionary containing markup data
    """
    sdict['name'] = self.name
    sdict['nodes'] = [ node.dump_dict() for node in self.nodes.values() ]
    sdict['model_configs'] = [ config.dump_dict() for config in self.model_configs.values() ]
    sdict['datasets'] = [ data.dump_dict() for data in self.datasets.values() ]
    if len(self.snapshots) > 0 : sdict['snapshots'] = { name : self.unnumpy(dict(values)) for name, values in self.snapshots.items() }
    if len(self.sets) > 0 : sdict['sets'] = { name : list(names) for name, names in self.sets.items() }

  def save(self, filename : str, flavor : str = None) -> 'Workspace' :
    """Save the workspace to a markup file, under the 'workspaces' key

      Args:
        filename: name of the file to save to
        flavor  : output markup flavor (currently supported: 'json' [default], 'yaml')
      Returns:
        self
    """
    return super().save(filename, flavor, payload={ 'workspaces' : [ self.dump_dict() ] })
