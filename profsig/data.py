"""Module containing the dataset class

  * :class:`Dataset` : an ordered list of weighted entries, each
    specifying the values of the observables and, for datasets
    spanning several channels, the channel label.

The entries are stored in a :class:`pandas.DataFrame` with one column per
observable, a `weight` column and, if the dataset is indexed by channel,
a column named after the index category.
"""

import numpy as np
import pandas as pd

from .base import Serializable


# -------------------------------------------------------------------------
class Dataset(Serializable) :
  """Class representing a weighted dataset

  Entries are first accumulated in a list and only converted to the
  dataframe on first access, so that adding entries one at a time
  remains cheap.

  Attributes:
     name        (str)  : the dataset name
     observables (list) : names of the observables
     index       (str)  : name of the channel index category, or `None` for a single-channel dataset
  """

  weight_column = 'weight'

  def __init__(self, name : str = '', observables : list = None, index : str = None) :
    super().__init__()
    self.name = name
    self.observables = list(observables) if observables is not None else []
    self.index = index
    self._frame = pd.DataFrame(columns=self.columns())
    self._pending = []

  def columns(self) -> list :
    return self.observables + [ self.weight_column ] + ([ self.index ] if self.index is not None else [])

  def add(self, values : dict, weight : float = 1, label : str = None) -> 'Dataset' :
    """Add an entry to the dataset

      Args:
        values : { observable name : value } pairs for the entry
        weight : the entry weight
        label  : the channel label, for indexed datasets
      Returns:
        self
    """
    missing = [ obs for obs in self.observables if not obs in values ]
    if len(missing) > 0 : raise KeyError("Entry for dataset '%s' is missing observables %s." % (self.name, str(missing)))
    if self.index is not None and label is None : raise ValueError("Entry for indexed dataset '%s' has no channel label." % self.name)
    row = { obs : float(values[obs]) for obs in self.observables }
    row[self.weight_column] = weight
    if self.index is not None : row[self.index] = label
    self._pending.append(row)
    return self

  def frame(self) -> pd.DataFrame :
    if len(self._pending) > 0 :
      pending = pd.DataFrame(self._pending, columns=self.columns())
      self._frame = pending if len(self._frame) == 0 else pd.concat([ self._frame, pending ], ignore_index=True)
      self._pending = []
    return self._frame

  def num_entries(self) -> int :
    return len(self.frame())

  def sum_entries(self) -> float :
    """Sum of the entry weights

      NaN weights are propagated to the result, so that invalid entries
      can be detected on the total.

      Returns:
        the total weight
    """
    return float(np.sum(self.weights()))

  def weights(self) -> np.ndarray :
    return self.frame()[self.weight_column].to_numpy(dtype=float)

  def values(self, obs : str) -> np.ndarray :
    return self.frame()[obs].to_numpy(dtype=float)

  def labels(self) -> list :
    if self.index is None : return []
    return list(dict.fromkeys(self.frame()[self.index]))

  def get(self, i : int) -> dict :
    return self.frame().iloc[i].to_dict()

  def split(self) -> dict :
    """Split an indexed dataset into per-channel datasets

      Returns:
        { channel label : dataset } pairs, in order of first appearance
        of the labels. A dataset without index is returned as a single
        entry with label `None`.
    """
    if self.index is None : return { None : self }
    frame = self.frame()
    datasets = {}
    for label in self.labels() :
      dataset = Dataset('%s_%s' % (self.name, label), self.observables)
      dataset._frame = frame.loc[frame[self.index] == label, self.observables + [ self.weight_column ]].reset_index(drop=True)
      datasets[label] = dataset
    return datasets

  @staticmethod
  def merge(name : str, datasets : dict, index : str) -> 'Dataset' :
    """Merge per-channel datasets into a single indexed dataset

      Args:
        name     : the name of the merged dataset
        datasets : { channel label : dataset } pairs
        index    : the name of the index category
      Returns:
        the merged dataset
    """
    observables = []
    for dataset in datasets.values() :
      observables += [ obs for obs in dataset.observables if not obs in observables ]
    merged = Dataset(name, observables, index)
    frames = []
    for label, dataset in datasets.items() :
      frame = dataset.frame().copy()
      frame[index] = label
      frames.append(frame.reindex(columns=merged.columns()))
    if len(frames) > 0 : merged._frame = pd.concat(frames, ignore_index=True)
    return merged

  def __str__(self) -> str :
    return self.string_repr()

  def string_repr(self, verbosity : int = 1, pre_indent : str = '', indent : str = '   ') -> str :
    rep = "%sDataset '%s' : %d entries, total weight %g" % (pre_indent, self.name, self.num_entries(), self.sum_entries())
    if verbosity >= 2 :
      for i in range(self.num_entries()) : rep += '\n%s%s%s' % (pre_indent, indent, str(self.get(i)))
    return rep

  def load_dict(self, sdict : dict) -> 'Dataset' :
    """Load object information from a dictionary of markup data

      Args:
        sdict : A dictionary containing markup data
      Returns:
        self
    """
    self.name = self.load_field('name', sdict, self.name, str)
    self.observables = self.load_field('observables', sdict, [], list)
    self.index = self.load_field('index', sdict, None, str)
    entries = self.load_field('entries', sdict, {}, dict)
    self._pending = []
    self._frame = pd.DataFrame({ column : entries.get(column, []) for column in self.columns() }, columns=self.columns())
    return self

  def fill_dict(self, sdict : dict) :
    """Save information to a dictionary of markup data

      Args:
         sdict: A dictionary containing markup data
    """
    sdict['name'] = self.name
    sdict['observables'] = list(self.observables)
    if self.index is not None : sdict['index'] = self.index
    frame = self.frame()
    sdict['entries'] = { column : self.unnumpy(frame[column].tolist()) for column in self.columns() }
