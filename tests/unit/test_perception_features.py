import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from blobtrace.core.config import Background
from blobtrace.core.errors import (
    FeatureArgumentError,
    FeatureRegistrationError,
    FeatureResultError,
    UnknownFeatureError,
)
from blobtrace.core.logger import LogComponent
from blobtrace.perception.blob_set import BlobSet
from blobtrace.perception.features import (
    BUILTIN_FEATURES,
    CustomFeature,
    FeatureRegistry,
    default_registry,
    feature_operation,
)
from blobtrace.perception.raster import ArrayRaster


class MyFeatures(CustomFeature):
    @feature_operation(int, float)
    def my_fancy_feature(self, blob, a, b):
        return b * blob.enclosed_area() * a


class LocationFeature(CustomFeature):
    @feature_operation(int, int)
    def distance_to_point(self, blob, width, height):
        cx, cy = blob.center_of_gravity()
        return math.hypot(cx - width, cy - height)

    def helper(self):
        return "not a feature"


class SummedMoments(CustomFeature):
    @feature_operation(varargs=int)
    def summed_moment_orders(self, blob, *orders):
        return sum(blob.moment(p, 0) for p in orders)


class BadResult(CustomFeature):
    @feature_operation()
    def shape_name(self, blob):
        return "square"


@pytest.fixture
def registry() -> FeatureRegistry:
    return FeatureRegistry()


@pytest.fixture
def nested_set(nested_image, registry) -> BlobSet:
    return BlobSet(ArrayRaster(nested_image), Background.WHITE, registry=registry).find_connected_components()


def test_builtin_names(registry) -> None:
    names = registry.builtin_names()

    assert len(names) == len(BUILTIN_FEATURES)
    assert "perimeter" in registry
    assert "fractal_box_dimension" in names
    assert registry.is_builtin("moment")
    assert registry.resolve("moment").describe() == "moment(int, int)"
    assert registry.resolve("fractal_box_dimension").describe() == "fractal_box_dimension(*int)"
    assert registry.custom_names() == []


def test_add_custom_feature(registry, nested_set) -> None:
    assert registry.add_custom_feature(MyFeatures()) == ["my_fancy_feature"]

    assert "my_fancy_feature" in registry
    assert not registry.is_builtin("my_fancy_feature")
    child = nested_set[1]
    assert child.evaluate_feature("my_fancy_feature", 2, 0.5) == 36.0
    assert child.evaluate_custom_feature("my_fancy_feature", 1, 1.0) == 36.0

    kept = nested_set.filter(0, 100, "my_fancy_feature", 2, 1)
    assert [b.label for b in kept] == [2, 3, 4, 5]


def test_custom_feature_parameter_types(registry, nested_set) -> None:
    registry.add_custom_feature(MyFeatures())

    with pytest.raises(FeatureArgumentError):
        nested_set.filter(0, 100, "my_fancy_feature", 2.0, 1.0)
    with pytest.raises(FeatureArgumentError):
        nested_set.filter(0, 100, "my_fancy_feature", 2)
    with pytest.raises(FeatureArgumentError):
        nested_set.filter(0, 100, "my_fancy_feature", 2, "1.0")
    # numpy scalars are numbers too
    assert len(nested_set.filter(0, 100, "my_fancy_feature", np.int64(2), np.float32(1.0))) == 4


def test_location_feature_filters_by_distance(registry, nested_set) -> None:
    assert registry.add_custom_feature(LocationFeature()) == ["distance_to_point"]

    near_origin = nested_set.filter(0, 20, "distance_to_point", 0, 0)
    assert [b.label for b in near_origin] == [2]


def test_varargs_custom_feature(registry, nested_set) -> None:
    registry.add_custom_feature(SummedMoments())
    child = nested_set[1]

    assert child.evaluate_feature("summed_moment_orders", 0, 0) == 72.0
    assert child.evaluate_feature("summed_moment_orders") == 0.0
    with pytest.raises(FeatureArgumentError):
        child.evaluate_feature("summed_moment_orders", 0, 0.5)


def test_non_numeric_result(registry, nested_set) -> None:
    registry.add_custom_feature(BadResult())

    with pytest.raises(FeatureResultError):
        nested_set.filter(0, 1, "shape_name")


def test_registration_rejects_invalid_features(registry) -> None:
    class Collides(CustomFeature):
        @feature_operation()
        def perimeter(self, blob):
            return 0.0

    class WrongArity(CustomFeature):
        @feature_operation(int)
        def needs_two(self, blob, a, b):
            return a + b

    class MissingVarargs(CustomFeature):
        @feature_operation(varargs=int)
        def fixed_only(self, blob):
            return 0.0

    class Empty(CustomFeature):
        pass

    with pytest.raises(FeatureRegistrationError, match="built-in"):
        registry.add_custom_feature(Collides())
    with pytest.raises(FeatureRegistrationError):
        registry.add_custom_feature(WrongArity())
    with pytest.raises(FeatureRegistrationError):
        registry.add_custom_feature(MissingVarargs())
    with pytest.raises(FeatureRegistrationError):
        registry.add_custom_feature(Empty())
    with pytest.raises(FeatureRegistrationError):
        registry.add_custom_feature(object())
    with pytest.raises(FeatureRegistrationError):
        feature_operation("int")

    assert registry.custom_names() == []


def test_reregistration_replaces_and_warns(registry, fresh_logger) -> None:
    class Version2(CustomFeature):
        @feature_operation(int, float)
        def my_fancy_feature(self, blob, a, b):
            return -1.0

    registry.add_custom_feature(MyFeatures())
    registry.add_custom_feature(Version2())

    assert registry.custom_names() == ["my_fancy_feature"]
    assert fresh_logger.entries_for(LogComponent.REGISTRY, level="WARNING")


def test_remove_custom_feature(registry) -> None:
    registry.add_custom_feature(MyFeatures())
    registry.remove_custom_feature("my_fancy_feature")

    assert "my_fancy_feature" not in registry
    with pytest.raises(UnknownFeatureError):
        registry.remove_custom_feature("my_fancy_feature")


def test_concurrent_registration(registry) -> None:
    def make(i):
        def value(self, blob):
            return float(i)

        return type(f"Feature{i}", (CustomFeature,), {f"feature_{i}": feature_operation()(value)})()

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda i: registry.add_custom_feature(make(i)), range(32)))

    assert len(registry.custom_names()) == 32


def test_registries_are_independent(registry) -> None:
    registry.add_custom_feature(MyFeatures())

    assert "my_fancy_feature" not in FeatureRegistry()
    assert default_registry() is default_registry()
    assert "my_fancy_feature" not in default_registry()
