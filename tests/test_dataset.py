"""
Tests for the dataset module.
"""

import pytest
import numpy as np
import pandas as pd
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ecommath.dataset import ColumnSpec, ColumnType, Dataset, Schema, load_snapshot
from ecommath.errors import EmptyInput, ShapeMismatch, TypeMismatch
from ecommath.math.named_matrix import NamedMatrix


class TestSchema:
    """Tests for the Schema class."""

    def test_from_dict(self, orders_schema):
        assert len(orders_schema) == 10
        assert orders_schema.kind_of('region') == ColumnType.CATEGORICAL
        assert orders_schema.names(ColumnType.BINARY) == ['is_returning', 'used_coupon', 'prime_member']
        assert 'order_value' in orders_schema
        assert 'customer_id' not in orders_schema

    def test_duplicate_names(self):
        with pytest.raises(ValueError):
            Schema([ColumnSpec('a', ColumnType.CONTINUOUS), ColumnSpec('a', ColumnType.BINARY)])

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            Schema.from_dict({'a': 'ordinal'})

    def test_infer(self):
        frame = pd.DataFrame({
            'basket_value': [12.5, 40.0, 7.25],
            'gift_wrap': [0, 1, 0],
            'courier': ['dhl', 'ups', 'dhl']
        })
        schema = Schema.infer(frame)

        assert schema.to_dict() == {
            'basket_value': 'continuous',
            'gift_wrap': 'binary',
            'courier': 'categorical'
        }


class TestValidation:
    """Tests for Dataset validation."""

    def test_valid(self, orders, orders_frame):
        assert len(orders) == 40
        assert orders.record_ids == list(orders_frame.index)
        assert orders.frame['order_value'].dtype == float
        assert orders.frame['is_returning'].dtype.kind == 'i'

    def test_frame_is_a_copy(self, orders):
        frame = orders.frame
        frame.iloc[0, 0] = -1.0
        assert orders.frame.iloc[0, 0] != -1.0

    def test_missing_column(self, orders_frame, orders_schema):
        with pytest.raises(ShapeMismatch):
            Dataset(orders_frame.drop(columns=['region']), orders_schema)

    def test_no_rows(self):
        frame = pd.DataFrame({'order_value': pd.Series([], dtype=float)})
        with pytest.raises(EmptyInput):
            Dataset(frame, Schema.from_dict({'order_value': 'continuous'}))

    def test_no_columns(self, orders_frame):
        with pytest.raises(EmptyInput):
            Dataset(orders_frame, Schema([]))

    def test_null_value(self, orders_frame, orders_schema):
        orders_frame.loc['order_03', 'items'] = np.nan
        with pytest.raises(TypeMismatch):
            Dataset(orders_frame, orders_schema)

    def test_non_numeric_continuous(self, orders_frame, orders_schema):
        orders_frame['items'] = orders_frame['items'].astype(object)
        orders_frame.loc['order_01', 'items'] = 'three'
        with pytest.raises(TypeMismatch):
            Dataset(orders_frame, orders_schema)

    def test_infinite_value(self, orders_frame, orders_schema):
        orders_frame.loc['order_05', 'order_value'] = np.inf
        with pytest.raises(TypeMismatch):
            Dataset(orders_frame, orders_schema)

    def test_binary_out_of_range(self, orders_frame, orders_schema):
        orders_frame.loc['order_00', 'used_coupon'] = 2
        with pytest.raises(TypeMismatch):
            Dataset(orders_frame, orders_schema)

    def test_errors_are_value_errors(self, orders_frame, orders_schema):
        orders_frame.loc['order_00', 'used_coupon'] = 2
        with pytest.raises(ValueError):
            Dataset(orders_frame, orders_schema)


class TestRecords:
    """Tests for Dataset.from_records."""

    def test_from_records(self):
        records = [
            {'order_value': 20.0, 'used_coupon': 1},
            {'order_value': 35.5, 'used_coupon': 0}
        ]
        dataset = Dataset.from_records(records, index=['o1', 'o2'])

        assert dataset.record_ids == ['o1', 'o2']
        assert dataset.schema.to_dict() == {'order_value': 'continuous', 'used_coupon': 'binary'}

    def test_not_rectangular(self):
        records = [
            {'order_value': 20.0, 'used_coupon': 1},
            {'order_value': 35.5}
        ]
        with pytest.raises(ShapeMismatch):
            Dataset.from_records(records)

    def test_empty(self):
        with pytest.raises(EmptyInput):
            Dataset.from_records([])


class TestSlices:
    """Tests for the typed slices."""

    def test_continuous(self, orders):
        continuous = orders.continuous()

        assert isinstance(continuous, NamedMatrix)
        assert continuous.colnames() == ['order_value', 'items', 'discount_rate', 'delivery_days', 'returns']
        assert continuous.rownames() == orders.record_ids

    def test_nominal(self, orders):
        assert orders.nominal().colnames() == [
            'is_returning', 'used_coupon', 'prime_member', 'payment_method', 'region'
        ]

    def test_indicators(self, orders, orders_frame):
        indicators = orders.indicators()
        names = indicators.colnames()

        assert names[:3] == ['is_returning', 'used_coupon', 'prime_member']
        payment = [n for n in names if n.startswith('payment_method=')]
        assert payment == sorted(payment)
        assert len(payment) == orders_frame['payment_method'].nunique()

        # Exactly one level per categorical column is set on each row
        values = indicators.colname_subset(payment).values
        assert np.all(values.sum(axis=1) == 1)
        assert set(np.unique(indicators.values)) <= {0, 1}

    def test_missing_group(self):
        dataset = Dataset(pd.DataFrame({'order_value': [1.0, 2.0]}))
        with pytest.raises(EmptyInput):
            dataset.categorical()
        with pytest.raises(EmptyInput):
            dataset.indicators()

    def test_slice_for(self, orders):
        assert orders.slice_for('continuous').colnames() == orders.continuous().colnames()
        assert orders.slice_for('indicators').colnames() == orders.indicators().colnames()
        assert orders.slice_for('nominal').colnames() == orders.nominal().colnames()
        assert orders.slice_for('mixed') is orders
        with pytest.raises(ValueError):
            orders.slice_for('ordinal')


class TestSampling:
    """Tests for Dataset.sample."""

    def test_deterministic(self, orders):
        first = orders.sample(10, seed=3)
        second = orders.sample(10, seed=3)

        assert len(first) == 10
        assert first.record_ids == second.record_ids
        assert set(first.record_ids) <= set(orders.record_ids)

    def test_capped_at_size(self, orders):
        assert len(orders.sample(100, seed=1)) == 40

    def test_invalid_size(self, orders):
        with pytest.raises(ValueError):
            orders.sample(0)


class TestSnapshots:
    """Tests for load_snapshot."""

    def test_csv(self, tmp_path, orders_frame, orders_schema):
        filepath = str(tmp_path / 'orders.csv')
        orders_frame.to_csv(filepath)

        dataset = load_snapshot(filepath, orders_schema, index_col=0)

        assert dataset.record_ids == list(orders_frame.index)
        assert np.allclose(dataset.continuous().values, Dataset(orders_frame, orders_schema).continuous().values)

    def test_csv_inferred_schema(self, tmp_path, orders_frame):
        filepath = str(tmp_path / 'orders.csv')
        orders_frame.to_csv(filepath)

        dataset = load_snapshot(filepath, index_col=0)

        assert dataset.schema.kind_of('used_coupon') == ColumnType.BINARY
        assert dataset.schema.kind_of('region') == ColumnType.CATEGORICAL

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(ValueError):
            load_snapshot(str(tmp_path / 'orders.xlsx'))
