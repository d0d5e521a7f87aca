"""Module containing the model classes

  * :class:`ModelConfig` : the markup-level description of a statistical model,
    specifying by name the top-level density and the roles of the parameters
    (observables, POIs, nuisance parameters and global observables).

  * :class:`Model` : a :class:`ModelConfig` bound to the :class:`profsig.workspace.Workspace`
    that holds its nodes. It provides the queries used to unfold the constraint
    terms and to build likelihoods.
"""

from .base import Serializable, RealVar
from .nll import NLL


# -------------------------------------------------------------------------
class ModelConfig(Serializable) :
  """Class describing the configuration of a statistical model

  Attributes:
     name               (str)  : the configuration name
     pdf                (str)  : name of the top-level density
     observables        (list) : names of the observables, including the channel index for simultaneous models
     pois               (list) : names of the parameters of interest
     nuisance_parameters(list) : names of the nuisance parameters
     global_observables (list) : names of the global (auxiliary) observables
  """

  def __init__(self, name : str = '', pdf : str = '', observables : list = None, pois : list = None,
               nuisance_parameters : list = None, global_observables : list = None) :
    super().__init__()
    self.name = name
    self.pdf = pdf
    self.observables = list(observables) if observables is not None else []
    self.pois = list(pois) if pois is not None else []
    self.nuisance_parameters = list(nuisance_parameters) if nuisance_parameters is not None else []
    self.global_observables = list(global_observables) if global_observables is not None else []

  def __str__(self) -> str :
    return "ModelConfig '%s' : pdf = %s, POIs = %s, NPs = %s, globs = %s" % (self.name, self.pdf, str(self.pois),
                                                                          str(self.nuisance_parameters), str(self.global_observables))

  def load_dict(self, sdict : dict) -> 'ModelConfig' :
    self.name                = self.load_field('name'               , sdict, self.name, str)
    self.pdf                 = self.load_field('pdf'                , sdict, '', str)
    self.observables         = self.load_field('observables'        , sdict, [], list)
    self.pois                = self.load_field('pois'               , sdict, [], list)
    self.nuisance_parameters = self.load_field('nuisance_parameters', sdict, [], list)
    self.global_observables  = self.load_field('global_observables' , sdict, [], list)
    return self

  def fill_dict(self, sdict : dict) :
    sdict['name'] = self.name
    sdict['pdf'] = self.pdf
    sdict['observables'] = list(self.observables)
    sdict['pois'] = list(self.pois)
    sdict['nuisance_parameters'] = list(self.nuisance_parameters)
    sdict['global_observables'] = list(self.global_observables)


# -------------------------------------------------------------------------
class Model :
  """Class binding a model configuration to its workspace

  Attributes:
     ws     (Workspace)   : the workspace holding the model nodes
     config (ModelConfig) : the model configuration
  """

  def __init__(self, ws : 'Workspace', config : ModelConfig) :
    self.ws = ws
    self.config = config

  @staticmethod
  def create(ws : 'Workspace', config_name : str = 'ModelConfig') -> 'Model' :
    """Build the model from a named configuration of the workspace

      Args:
         ws          : the workspace
         config_name : name of the model configuration
      Returns:
         the model
    """
    config = ws.obj(config_name)
    if config is None : raise KeyError("Model configuration '%s' not found in workspace '%s'." % (config_name, ws.name))
    return Model(ws, config)

  def pdf(self) :
    pdf = self.ws.node(self.config.pdf)
    if pdf is None : raise KeyError("Density '%s' of model '%s' not found in workspace '%s'." % (self.config.pdf, self.config.name, self.ws.name))
    return pdf

  def poi(self) -> RealVar :
    """The parameter of interest, taken as the first POI of the configuration

      Returns:
        the POI parameter
    """
    if len(self.config.pois) == 0 : raise KeyError("Model '%s' does not define any POI." % self.config.name)
    poi = self.ws.var(self.config.pois[0])
    if poi is None : raise KeyError("POI '%s' not found in workspace '%s'." % (self.config.pois[0], self.ws.name))
    return poi

  def observables(self) -> list :
    return list(self.config.observables)

  def nuisance_parameters(self) -> list :
    return list(self.config.nuisance_parameters)

  def global_observables(self) -> list :
    return list(self.config.global_observables)

  def is_simultaneous(self) -> bool :
    return self.pdf().type_str == 'simultaneous'

  def channels(self) -> dict :
    """Per-channel densities of the model

      Returns:
        { channel label : density } pairs; a single-channel model has
        a single entry with label `None`.
    """
    pdf = self.pdf()
    if not self.is_simultaneous() : return { None : pdf }
    return { label : self.ws.node(channel) for label, channel in pdf.channels.items() }

  def index_category(self) -> str :
    return self.pdf().index if self.is_simultaneous() else None

  def constraints(self) -> list :
    """Names of the constraint densities of the model

      Returns:
        the constraint dependencies of the top-level density over
        the observables and nuisance parameters of the model
    """
    return self.pdf().constraints(self.ws, self.observables(), self.nuisance_parameters())

  def dependents_of(self, node) -> list :
    return self.ws.dependents_of(node)

  def components_of(self, node) -> list :
    return self.ws.components_of(node)

  def depends_on(self, node, target) -> bool :
    return self.ws.depends_on(node, target)

  def primary_observable(self, pdf = None) -> RealVar :
    """The first observable on which a density depends

      Args:
         pdf : the density (default: the top-level density of the model)
      Returns:
         the observable
    """
    if pdf is None : pdf = self.pdf()
    for obs in self.observables() :
      var = self.ws.var(obs)
      if var is not None and self.ws.depends_on(pdf, obs) : return var
    raise KeyError("Density '%s' does not depend on any observable of model '%s'." % (pdf.name, self.config.name))

  def create_nll(self, data : 'Dataset', constrain : list = None, offset : bool = True, num_cpu : int = 1) -> 'NLL' :
    """Build the negative log-likelihood of the model for a dataset

      Args:
         data      : the dataset
         constrain : parameters whose constraint terms should be included (default: the nuisance parameters)
         offset    : if `True`, subtract the value of the first evaluation
         num_cpu   : number of threads used to evaluate the channel terms
      Returns:
         the NLL objective
    """
    if constrain is None : constrain = self.nuisance_parameters()
    return NLL(self, data, constrain=constrain, offset=offset, num_cpu=num_cpu)
