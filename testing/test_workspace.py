import pytest

from profsig import Workspace, RealVar, LinearCombination, Dataset, make_counting_workspace


def test_snapshot_restores_captured_values(counting_ws) :
  names = [ 'mu', 'alpha_bkg', 'nom_alpha_bkg' ]
  counting_ws.var('mu').set_value(2.5)
  counting_ws.var('alpha_bkg').set_value(-0.3)
  counting_ws.save_snapshot('snap', names)
  counting_ws.var('mu').set_value(7)
  counting_ws.var('alpha_bkg').set_value(1.2)
  counting_ws.var('nom_alpha_bkg').assign(0.4)
  assert counting_ws.load_snapshot('snap')
  assert counting_ws.var('mu').value == 2.5
  assert counting_ws.var('alpha_bkg').value == -0.3
  assert counting_ws.var('nom_alpha_bkg').value == 0


def test_snapshot_is_read_only(counting_ws) :
  snapshot = counting_ws.save_snapshot('snap', [ 'mu' ])
  with pytest.raises(TypeError) :
    snapshot['mu'] = 3


def test_missing_snapshot_changes_nothing(counting_ws) :
  counting_ws.var('mu').set_value(3)
  assert not counting_ws.load_snapshot('nope')
  assert counting_ws.var('mu').value == 3
  assert not counting_ws.has_snapshot('nope')


def test_load_or_save_snapshot(counting_ws) :
  counting_ws.var('alpha_bkg').set_value(0.7)
  assert not counting_ws.load_or_save_snapshot('lazy', [ 'alpha_bkg' ])
  assert counting_ws.has_snapshot('lazy')
  counting_ws.var('alpha_bkg').set_value(-2)
  assert counting_ws.load_or_save_snapshot('lazy', [ 'alpha_bkg' ])
  assert counting_ws.var('alpha_bkg').value == 0.7


def test_snapshot_of_unknown_parameter(counting_ws) :
  with pytest.raises(KeyError) :
    counting_ws.save_snapshot('snap', [ 'not_a_par' ])


def test_duplicate_registration(counting_ws) :
  with pytest.raises(KeyError) :
    counting_ws.add(RealVar('mu', 0))
  counting_ws.add(RealVar('mu', 2, 0, 5), replace=True)
  assert counting_ws.var('mu').value == 2
  with pytest.raises(KeyError) :
    counting_ws.add_data(Dataset('obsData', [ 'obs_x' ]))


def test_lookups(counting_ws) :
  assert counting_ws.var('mu') is not None
  assert counting_ws.var('bkg_norm') is None
  assert counting_ws.node('bkg_norm') is not None
  assert counting_ws.data('nope') is None
  assert counting_ws.obj('ModelConfig') is not None
  assert counting_ws.eval('bkg_norm') == pytest.approx(1)
  counting_ws.var('alpha_bkg').set_value(1)
  assert counting_ws.eval('bkg_norm') == pytest.approx(1.1)


def test_graph_queries(counting_ws) :
  deps = counting_ws.dependents_of('model')
  for name in [ 'binned', 'alpha_bkgConstraint', 'mu', 'bkg_norm', 'alpha_bkg', 'obs_x', 'nom_alpha_bkg' ] :
    assert name in deps
  assert not 'model' in deps
  assert counting_ws.components_of('model') == [ 'model', 'binned', 'bkg_norm', 'alpha_bkgConstraint' ]
  assert counting_ws.depends_on('model', 'model')
  assert counting_ws.depends_on('alpha_bkgConstraint', 'nom_alpha_bkg')
  assert not counting_ws.depends_on('binned', 'nom_alpha_bkg')


def test_cyclic_graph() :
  ws = Workspace('cycle')
  ws.add(LinearCombination('f', 0, { 'g' : 1 }))
  ws.add(LinearCombination('g', 0, { 'f' : 1 }))
  assert ws.dependents_of('f') == [ 'g' ]
  assert ws.components_of('g') == [ 'g', 'f' ]


@pytest.mark.parametrize('suffix', [ 'json', 'yaml' ])
def test_markup_roundtrip(counting_ws, tmp_path, suffix) :
  counting_ws.var('alpha_bkg').set_value(0.25)
  counting_ws.save_snapshot('snap', [ 'alpha_bkg' ])
  filename = str(tmp_path / ('ws.' + suffix))
  counting_ws.save(filename)
  loaded = Workspace.create(filename, 'combined')
  assert list(loaded.nodes) == list(counting_ws.nodes)
  assert loaded.data('obsData').sum_entries() == pytest.approx(10)
  assert loaded.data('obsData').values('obs_x')[0] == pytest.approx(0.5)
  assert loaded.obj('ModelConfig').nuisance_parameters == [ 'alpha_bkg' ]
  assert loaded.snapshots['snap']['alpha_bkg'] == pytest.approx(0.25)
  assert loaded.var('nom_alpha_bkg').constant
  assert loaded.eval('model') == pytest.approx(counting_ws.eval('model'))


def test_missing_workspace(counting_ws, tmp_path) :
  filename = str(tmp_path / 'ws.json')
  counting_ws.save(filename)
  with pytest.raises(KeyError) :
    Workspace.create(filename, 'other')


def test_simultaneous_roundtrip(tmp_path) :
  ws = make_counting_workspace(channels=[ 'A', 'B' ])
  filename = str(tmp_path / 'sim.json')
  ws.save(filename)
  loaded = Workspace.create(filename)
  data = loaded.data('obsData')
  assert data.index == 'channelCat'
  assert data.labels() == [ 'A', 'B' ]
  assert list(data.split()) == [ 'A', 'B' ]
  assert loaded.node('simPdf').channels == { 'A' : 'model_A', 'B' : 'model_B' }
