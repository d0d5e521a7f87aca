"""Module containing the unfolding of constraint terms

  * :class:`ConstraintUnfolder` : decomposes the constraint terms of a model into
    elementary constraint densities (see :data:`profsig.nodes.ELEMENTARY_KINDS`),
    and pairs each of them with the nuisance parameter and the global observable
    it relates.

The pairing is discovered from the model graph, using only the `depends_on`
and `components_of` queries of the workspace:

  * the nuisance parameter is the first one on which the constraint depends. If
    the constraint is built on top of derived expressions (e.g. a Gaussian whose
    mean is a function of the nuisance parameter), the expression at the top of
    the component tree is used instead.

  * the global observable is the first one on which the constraint depends.
"""

from .nodes import ELEMENTARY_KINDS


MAX_UNFOLD_DEPTH = 50


# -------------------------------------------------------------------------
class ConstraintUnfolder :
  """Class unfolding composite constraint terms

  Attributes:
     strict    (bool) : if `True`, an ambiguous nuisance parameter isolation raises a `ValueError`;
                        otherwise the term is skipped with a warning.
     verbosity (int)  : output level
  """

  def __init__(self, strict : bool = True, verbosity : int = 0) :
    self.strict = strict
    self.verbosity = verbosity

  def unfold(self, ws : 'Workspace', initial : list, final : list, obs : list, nuis : list, depth : int = 0) -> list :
    """Recursively replace composite constraint terms by their elementary components

      Each density in `initial` that is of an elementary kind is appended
      to `final`; the others are replaced by their own constraint terms,
      which are unfolded in turn.

      Args:
         ws      : the workspace holding the model graph
         initial : names of the densities to unfold
         final   : list in which the elementary densities are accumulated
         obs     : names of the observables
         nuis    : names of the nuisance parameters
         depth   : current recursion depth
      Returns:
         the `final` list
    """
    if depth > MAX_UNFOLD_DEPTH :
      raise RuntimeError("Could not unfold constraints after %d levels of recursion.\nInitial: %s\nFinal: %s"
                         % (MAX_UNFOLD_DEPTH, str(initial), str(final)))
    for name in initial :
      pdf = ws.node(name)
      if pdf is None : raise KeyError("Constraint density '%s' not found in workspace '%s'." % (name, ws.name))
      if pdf.type_str in ELEMENTARY_KINDS :
        if not name in final : final.append(name)
      else :
        depth += 1
        self.unfold(ws, pdf.constraints(ws, obs, nuis), final, obs, nuis, depth)
    return final

  def isolate(self, ws : 'Workspace', name : str) -> list :
    """Top-level components of a constraint density, excluding itself

      Components on which another component depends are removed, so that
      only the highest-level expressions remain.

      Args:
         ws   : the workspace holding the model graph
         name : the name of the constraint density
      Returns:
         the names of the surviving components
    """
    components = [ comp for comp in ws.components_of(name) if comp != name ]
    return [ comp for comp in components if not any([ other != comp and ws.depends_on(other, comp) for other in components ]) ]

  def pair(self, ws : 'Workspace', name : str, nuis : list, globs : list) -> tuple :
    """Find the nuisance parameter and global observable related by a constraint

      Args:
         ws    : the workspace holding the model graph
         name  : the name of the elementary constraint density
         nuis  : names of the nuisance parameters
         globs : names of the global observables
      Returns:
         a (nuisance, global observable) pair of names, or `None` if the pairing fails
    """
    nui = next((par for par in nuis if ws.depends_on(name, par)), None)
    survivors = self.isolate(ws, name)
    if len(survivors) > 1 :
      if self.strict :
        raise ValueError("Could not isolate the nuisance parameter of constraint '%s', candidates are %s." % (name, str(survivors)))
      print("WARNING: could not isolate the nuisance parameter of constraint '%s' (candidates %s), skipping it." % (name, str(survivors)))
      return None
    if len(survivors) == 1 : nui = survivors[0]
    glob = next((par for par in globs if ws.depends_on(name, par)), None)
    if nui is None or glob is None :
      print("WARNING: could not find a nuisance parameter or global observable for constraint '%s'." % name)
      return None
    if self.verbosity >= 1 : print("INFO: pairing nuisance '%s' with global observable '%s', from constraint '%s'." % (nui, glob, name))
    return (nui, glob)

  def pairs(self, model : 'Model') -> list :
    """Ordered nuisance parameter / global observable pairs of a model

      Args:
         model : the model
      Returns:
         the list of (nuisance, global observable) pairs
    """
    ws = model.ws
    obs, nuis, globs = model.observables(), model.nuisance_parameters(), model.global_observables()
    elementary = self.unfold(ws, model.constraints(), [], obs, nuis)
    pairs = []
    for name in elementary :
      pair = self.pair(ws, name, nuis, globs)
      if pair is not None : pairs.append(pair)
    return pairs
