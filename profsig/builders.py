"""Module containing builders for simple workspaces

  * :func:`make_counting_workspace` : a counting experiment with a signal sample scaled
    by the POI `mu` and a background sample whose normalization is subject to a
    Gaussian-constrained nuisance parameter `alpha_bkg`.

    The background normalization is `1 + uncertainty*alpha_bkg`, and the constraint
    term is a unit Gaussian of the global observable `nom_alpha_bkg` (nominal value 0)
    centered on `alpha_bkg`. Each channel has a single-bin observable, and the
    observed dataset `obsData` contains one entry per channel, weighted by the
    observed count.
"""

from .base import RealVar, Category
from .nodes import LinearCombination, Gaussian, BinnedPdf, ProdPdf, SimultaneousPdf
from .model import ModelConfig
from .data import Dataset
from .workspace import Workspace


def make_counting_workspace(signal : float = 5, background : float = 5, uncertainty : float = 0.1, n_obs : float = 10,
                            channels : list = None, name : str = 'combined', poi_name : str = 'mu',
                            config_name : str = 'ModelConfig', data_name : str = 'obsData') -> Workspace :
  """Build a counting-experiment workspace

    Args:
       signal      : expected signal yield for `mu = 1`, in each channel
       background  : expected background yield, in each channel
       uncertainty : relative uncertainty on the background yield
       n_obs       : observed count, in each channel
       channels    : channel labels; if given, a simultaneous model is built with one channel per label
       name        : the workspace name
       poi_name    : the name of the POI
       config_name : the name of the model configuration
       data_name   : the name of the observed dataset
    Returns:
       the workspace
  """
  ws = Workspace(name)
  ws.add(RealVar(poi_name, 1, -40, 40))
  ws.add(RealVar('alpha_bkg', 0, -5, 5))
  ws.add(RealVar('nom_alpha_bkg', 0, -10, 10, constant=True))
  ws.add(LinearCombination('bkg_norm', 1, { 'alpha_bkg' : uncertainty }))
  ws.add(Gaussian('alpha_bkgConstraint', 'nom_alpha_bkg', 'alpha_bkg', 1))

  def add_channel(suffix) :
    obs = ws.add(RealVar('obs_x' + suffix, 0.5, 0, 1, nbins=1))
    samples = [ { 'name' : 'signal', 'yields' : [ signal ], 'norm' : poi_name },
                { 'name' : 'background', 'yields' : [ background ], 'norm' : 'bkg_norm' } ]
    ws.add(BinnedPdf('binned' + suffix, obs.name, samples))
    return ws.add(ProdPdf('model' + suffix, [ 'binned' + suffix, 'alpha_bkgConstraint' ]))

  if channels is None :
    pdf = add_channel('')
    observables = [ 'obs_x' ]
    data = Dataset(data_name, observables)
    data.add({ 'obs_x' : 0.5 }, n_obs)
  else :
    ws.add(Category('channelCat', channels))
    pdfs = { label : add_channel('_' + label) for label in channels }
    pdf = ws.add(SimultaneousPdf('simPdf', 'channelCat', { label : channel_pdf.name for label, channel_pdf in pdfs.items() }))
    observables = [ 'obs_x_' + label for label in channels ]
    data = Dataset(data_name, observables, 'channelCat')
    for label in channels :
      data.add({ obs : 0.5 for obs in observables }, n_obs, label)
    observables = observables + [ 'channelCat' ]

  ws.add_model_config(ModelConfig(config_name, pdf.name, observables, [ poi_name ], [ 'alpha_bkg' ], [ 'nom_alpha_bkg' ]))
  ws.add_data(data)
  return ws
