"""Module containing the significance result record

  * :class:`SignificanceResult` : the observed, median expected and injected
    significances and p-values, stored as a fixed record of 6 labelled
    entries together with the corresponding test statistic values.
"""

import os
import matplotlib.pyplot as plt

from .base import Serializable


# -------------------------------------------------------------------------
class SignificanceResult(Serializable) :
  """Class storing the results of a significance computation

  Attributes:
     obs_sig    (float) : observed significance
     med_sig    (float) : median expected significance
     inj_sig    (float) : significance for the injected signal
     obs_pvalue (float) : observed p-value
     med_pvalue (float) : median expected p-value
     inj_pvalue (float) : p-value for the injected signal
     obs_q0     (float) : observed test statistic
     med_q0     (float) : test statistic for the Asimov dataset
     inj_q0     (float) : test statistic for the injected dataset
     mass       (float) : the mass point label
     folder     (str)   : the output folder label
  """

  labels = [ 'Observed sig', 'Expected sig', 'Injected sig', 'Observed p0', 'Expected p0', 'Injected p0' ]
  q0_labels = [ 'Observed q0', 'Expected q0', 'Injected q0' ]

  def __init__(self, mass : float = 0, folder : str = '') :
    super().__init__()
    self.mass = mass
    self.folder = folder
    self.obs_sig, self.med_sig, self.inj_sig = 0, 0, 0
    self.obs_pvalue, self.med_pvalue, self.inj_pvalue = 1, 1, 1
    self.obs_q0, self.med_q0, self.inj_q0 = 0, 0, 0

  def values(self) -> list :
    return [ self.obs_sig, self.med_sig, self.inj_sig, self.obs_pvalue, self.med_pvalue, self.inj_pvalue ]

  def set_values(self, values : list) -> 'SignificanceResult' :
    if len(values) != len(self.labels) : raise ValueError('Expected %d result values, got %d.' % (len(self.labels), len(values)))
    self.obs_sig, self.med_sig, self.inj_sig, self.obs_pvalue, self.med_pvalue, self.inj_pvalue = values
    return self

  def q0_values(self) -> list :
    return [ self.obs_q0, self.med_q0, self.inj_q0 ]

  def filename(self, output_dir : str = 'results', markup : str = 'json') -> str :
    return os.path.join(output_dir, self.folder, '%g.%s' % (self.mass, markup))

  def write(self, output_dir : str = 'results', markup : str = 'json') -> str :
    """Write the result record to `<output_dir>/<folder>/<mass>.<markup>`

      Args:
         output_dir : the top-level output directory
         markup     : the output markup flavor ('json' or 'yaml')
      Returns:
         the name of the output file
    """
    filename = self.filename(output_dir, markup)
    os.makedirs(os.path.dirname(filename), exist_ok=True)
    self.save(filename, markup)
    return filename

  def plot(self, filename : str, figsize : tuple = (8, 4)) :
    """Save the result record as a labelled bar chart

      Args:
         filename : name of the output image file
         figsize  : the figure size
    """
    fig, ax = plt.subplots(figsize=figsize, dpi=100, constrained_layout=True)
    ax.bar(range(len(self.labels)), self.values(), color=[ 'tab:blue' ]*3 + [ 'tab:orange' ]*3)
    ax.set_xticks(range(len(self.labels)))
    ax.set_xticklabels(self.labels)
    ax.set_title('mass = %g' % self.mass)
    fig.savefig(filename)
    plt.close(fig)

  def __str__(self) -> str :
    return self.string_repr()

  def string_repr(self, verbosity : int = 1, pre_indent : str = '', indent : str = '   ') -> str :
    rep = '%sObserved significance: %g\n' % (pre_indent, self.obs_sig)
    rep += '%sObserved pValue: %g' % (pre_indent, self.obs_pvalue)
    if self.med_sig != 0 or verbosity >= 2 :
      rep += '\n%sMedian test stat val: %g' % (pre_indent, self.med_q0)
      rep += '\n%sMedian significance:   %g' % (pre_indent, self.med_sig)
      rep += '\n%sMedian pValue: %g' % (pre_indent, self.med_pvalue)
    if self.inj_sig != 0 or verbosity >= 2 :
      rep += '\n%sInjected test stat val: %g' % (pre_indent, self.inj_q0)
      rep += '\n%sInjected significance:   %g' % (pre_indent, self.inj_sig)
      rep += '\n%sInjected pValue: %g' % (pre_indent, self.inj_pvalue)
    return rep

  def load_dict(self, sdict : dict) -> 'SignificanceResult' :
    self.mass = self.load_field('mass', sdict, 0, [int, float])
    self.folder = self.load_field('folder', sdict, '', str)
    hypo = self.load_field('hypo', sdict, {}, dict)
    self.set_values([ hypo.get(label, 0 if i < 3 else 1) for i, label in enumerate(self.labels) ])
    q0 = self.load_field('q0', sdict, {}, dict)
    self.obs_q0, self.med_q0, self.inj_q0 = [ q0.get(label, 0) for label in self.q0_labels ]
    return self

  def fill_dict(self, sdict : dict) :
    sdict['mass'] = self.unnumpy(self.mass)
    sdict['folder'] = self.folder
    sdict['hypo'] = { label : self.unnumpy(value) for label, value in zip(self.labels, self.values()) }
    sdict['q0'] = { label : self.unnumpy(value) for label, value in zip(self.q0_labels, self.q0_values()) }
