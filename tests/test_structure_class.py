import numpy as np
import pytest

from jax_ibforce.base import structure_class as sc
from jax_ibforce.base.errors import DegenerateGeometryError
from jax_ibforce.base.errors import PointIndexError


def test_point_id_round_trip():
  point = sc.PointId(3)
  assert point.offset == 2
  assert sc.PointId.from_offset(2) == point
  assert sc.PointId(point) == point


def test_point_id_rejects_zero_and_non_integers():
  with pytest.raises(PointIndexError):
    sc.PointId(0)
  with pytest.raises(TypeError):
    sc.PointId(1.0)
  with pytest.raises(TypeError):
    sc.PointId(True)


def test_table_stores_zero_based_offsets():
  table = sc.SpringTable.from_records([sc.Spring(1, 2, 2.0, 1.5)], num_points=2)
  np.testing.assert_array_equal(table.master, [0])
  np.testing.assert_array_equal(table.slave, [1])
  np.testing.assert_allclose(table.stiffness, [2.0])
  assert len(table) == 1
  assert table.num_points == 2


def test_index_out_of_range_is_reported_at_load_time():
  records = [sc.Target(1, 0.0, 0.0, 1.0), sc.Target(4, 0.0, 0.0, 1.0)]
  with pytest.raises(PointIndexError) as excinfo:
    sc.TargetTable.from_records(records, num_points=3)
  err = excinfo.value
  assert isinstance(err, IndexError)
  assert err.element == 'target'
  assert err.index == 2
  assert 'target #2' in str(err)


def test_from_array_reads_one_based_rows():
  rows = [[1, 2, 3, 4.0, 0.5], [2, 3, 4, 4.0, 0.0]]
  table = sc.BeamTable.from_array(rows, num_points=4)
  np.testing.assert_array_equal(table.first, [0, 1])
  np.testing.assert_array_equal(table.middle, [1, 2])
  np.testing.assert_array_equal(table.last, [2, 3])
  np.testing.assert_allclose(table.curvature, [0.5, 0.0])


def test_from_array_reports_row_of_non_positive_point():
  rows = [[1, 2, 1.0, 0.5], [2, 0, 1.0, 0.5]]
  with pytest.raises(PointIndexError) as excinfo:
    sc.SpringTable.from_array(rows, num_points=3)
  assert excinfo.value.element == 'spring'
  assert excinfo.value.index == 2


def test_from_array_rejects_wrong_column_count():
  with pytest.raises(ValueError):
    sc.SpringTable.from_array([[1, 2, 3.0]], num_points=2)


def test_from_array_empty_is_empty_table():
  table = sc.MuscleTable.from_array(np.zeros((0, 7)), num_points=5)
  assert len(table) == 0


def test_record_validation():
  with pytest.raises(ValueError):
    sc.Spring(1, 2, float('nan'), 1.0)
  with pytest.raises(ValueError):
    sc.Spring(1, 2, 1.0, -1.0)
  with pytest.raises(ValueError):
    sc.Mass(1, 0.0, 0.0, 1.0, 0.0)
  with pytest.raises(ValueError):
    sc.Muscle(1, 2, 0.0, 0.4, 0.25, 4.0, 1.0)
  with pytest.raises(DegenerateGeometryError):
    sc.Spring(2, 2, 1.0, 1.0)


def test_model_flags():
  flags = sc.ModelFlags.from_kinds([sc.ElementKind.SPRINGS, 'beams'])
  assert flags.enabled == {sc.ElementKind.SPRINGS, sc.ElementKind.BEAMS}
  assert flags.is_enabled('springs')
  assert not flags.is_enabled(sc.ElementKind.MASSES)
  assert sc.ModelFlags.all().enabled == set(sc.ElementKind)
  assert sc.ModelFlags().enabled == frozenset()


def test_model_flags_from_mapping():
  flags = sc.ModelFlags.from_mapping({'springs': 1, 'targets': 0, 'hill_muscles': 1})
  assert flags == sc.ModelFlags(springs=True, hill_muscles=True)
  with pytest.raises(KeyError):
    sc.ModelFlags.from_mapping({'porous': 1})


def test_structure_tables_default_to_empty():
  tables = sc.StructureTables()
  assert all(len(table) == 0 for _, table in tables.tables())
  assert tables.table(sc.ElementKind.MUSCLES) is tables.muscles


def test_lagrangian_points_from_positions():
  points = sc.LagrangianPoints.from_positions(np.array([[0.0, 1.0], [2.0, 3.0]]))
  assert points.num_points == 2
  np.testing.assert_array_equal(points.x_prev, points.x)
  np.testing.assert_array_equal(points.positions(), [[0.0, 1.0], [2.0, 3.0]])
  with pytest.raises(ValueError):
    sc.LagrangianPoints(np.zeros(2), np.zeros(3), np.zeros(2), np.zeros(2))
