import numpy as np
import pytest

from blobtrace.core.config import Background, TracerConfig
from blobtrace.core.errors import ContourInvariantError, InvalidRasterError
from blobtrace.core.logger import LogComponent
from blobtrace.perception import tracer as tracer_module
from blobtrace.perception.raster import ArrayRaster
from blobtrace.perception.tracer import ContourTracer

SQUARE_CONTOUR = [(1, 1), (2, 1), (3, 1), (3, 2), (3, 3), (2, 3), (1, 3), (1, 2), (1, 1)]


def trace(image: np.ndarray, background=Background.BLACK, **config):
    return ContourTracer(config=TracerConfig(background=background, **config)).trace(ArrayRaster(image))


def test_traces_square_outer_contour(square_image) -> None:
    result = trace(square_image)

    assert len(result.blobs) == 1
    blob = result.blobs[0]
    assert blob.label == 1
    assert blob.outer_contour.to_list() == SQUARE_CONTOUR
    assert blob.inner_contours == ()
    assert not result.padded
    assert result.violations == []


def test_label_buffer_marks_background(square_image) -> None:
    buffer = trace(square_image).label_buffer

    assert buffer.dtype == np.int32
    assert (buffer[1:4, 1:4] == 1).all()
    assert buffer[0, 2] == -1
    assert buffer[4, 2] == -1
    assert buffer[0, 0] == -1


def test_white_background_is_default(square_image) -> None:
    inverted = 255 - square_image
    result = ContourTracer().trace(ArrayRaster(inverted))

    assert result.blobs[0].outer_contour.to_list() == SQUARE_CONTOUR


def test_inner_contour_of_one_pixel_hole(ring_image) -> None:
    result = trace(ring_image)

    assert len(result.blobs) == 1
    blob = result.blobs[0]
    assert blob.outer_contour.to_list() == SQUARE_CONTOUR
    assert [c.to_list() for c in blob.inner_contours] == [[(2, 1), (1, 2), (2, 3), (3, 2), (2, 1)]]
    assert result.label_buffer[2, 2] == 0


def test_isolated_pixel_gives_one_point_contour() -> None:
    image = np.zeros((3, 3), dtype=np.uint8)
    image[1, 1] = 255

    result = trace(image)
    assert result.blobs[0].outer_contour.to_list() == [(1, 1)]
    assert (result.label_buffer == np.array([[-1, -1, -1], [-1, 1, -1], [-1, -1, -1]])).all()


def test_diagonal_pixels_are_connected() -> None:
    image = np.zeros((4, 4), dtype=np.uint8)
    image[1, 1] = 255
    image[2, 2] = 255

    result = trace(image)
    assert len(result.blobs) == 1
    assert result.blobs[0].outer_contour.to_list() == [(1, 1), (2, 2), (1, 1)]


def test_thin_line_contour_walks_back() -> None:
    image = np.zeros((3, 5), dtype=np.uint8)
    image[1, 1:4] = 255

    contour = trace(image).blobs[0].outer_contour
    assert contour.to_list() == [(1, 1), (2, 1), (3, 1), (2, 1), (1, 1)]


def test_labels_increase_in_scan_order() -> None:
    image = np.zeros((7, 8), dtype=np.uint8)
    image[1:3, 5:7] = 255  # découvert en premier (ligne 1)
    image[3:5, 1:3] = 255
    image[5, 5] = 255

    result = trace(image)
    assert [b.label for b in result.blobs] == [1, 2, 3]
    assert result.blobs[0].bounds.min_x == 5
    assert result.blobs[1].bounds.min_x == 1
    assert result.label_count == 3


def test_object_on_border_is_padded() -> None:
    image = np.full((3, 3), 255, dtype=np.uint8)

    result = trace(image)
    assert result.padded
    assert result.label_buffer.shape == (3, 3)
    assert (result.label_buffer == 1).all()
    contour = result.blobs[0].outer_contour.to_list()
    assert contour == [(x - 1, y - 1) for x, y in SQUARE_CONTOUR]
    assert result.blobs[0].is_on_edge()


def test_padding_round_trip_matches_interior_trace(square_image) -> None:
    # le même carré collé au coin : contour identique au décalage près
    cropped = square_image[1:, 1:]
    inner = trace(square_image).blobs[0].outer_contour
    border = trace(cropped).blobs[0].outer_contour

    assert border == inner.translate(-1, -1)


def test_nested_components(nested_image) -> None:
    result = ContourTracer(Background.WHITE).trace(ArrayRaster(nested_image))

    assert len(result.blobs) == 5
    parent = result.blobs[0]
    assert parent.label == 1
    assert len(parent.inner_contours) == 4
    assert all(len(child.inner_contours) == 0 for child in result.blobs[1:])
    assert [b.label for b in result.blobs] == [1, 2, 3, 4, 5]
    assert result.label_buffer[10, 10] == 2
    assert result.label_buffer[6, 6] <= 0


def test_multilevel_traces_each_grey_level() -> None:
    image = np.zeros((4, 7), dtype=np.uint8)
    image[1:3, 1:3] = 100
    image[1:3, 4:6] = 200

    with pytest.raises(InvalidRasterError):
        trace(image)

    result = trace(image, allow_multilevel=True)
    assert [b.label for b in result.blobs] == [1, 2]
    assert result.label_buffer[1, 1] == 1
    assert result.label_buffer[2, 5] == 2
    assert result.label_buffer[0, 0] == -1


def test_multilevel_adjacent_levels_stay_separate() -> None:
    image = np.zeros((4, 6), dtype=np.uint8)
    image[1:3, 1:3] = 100
    image[1:3, 3:5] = 200

    result = trace(image, allow_multilevel=True)
    assert len(result.blobs) == 2
    assert (result.label_buffer[1:3, 1:3] == 1).all()
    assert (result.label_buffer[1:3, 3:5] == 2).all()


def test_label_buffer_round_trip(nested_image) -> None:
    first = ContourTracer(Background.WHITE).trace(ArrayRaster(nested_image))
    labels = np.where(first.label_buffer > 0, first.label_buffer, 0).astype(np.uint8)

    second = trace(labels, allow_multilevel=True)
    assert len(second.blobs) == len(first.blobs)
    assert sorted(b.outer_contour.to_list() for b in second.blobs) == sorted(
        b.outer_contour.to_list() for b in first.blobs
    )


def _orphan_scan(self):
    yield "external", 1, 1, self.next_label, [(1, 1)]
    yield "internal", 2, 2, 99, [(2, 2)]


def test_orphan_inner_contour_is_recorded(monkeypatch, square_image, fresh_logger) -> None:
    monkeypatch.setattr(tracer_module._LabelingRun, "scan", _orphan_scan)

    result = trace(square_image)
    assert len(result.blobs) == 1
    assert len(result.violations) == 1
    assert result.violations[0].label == 99
    assert result.violations[0].position == (2, 2)
    assert fresh_logger.entries_for(LogComponent.TRACING, level="ERROR")


def test_orphan_inner_contour_raises_in_strict_mode(monkeypatch, square_image) -> None:
    monkeypatch.setattr(tracer_module._LabelingRun, "scan", _orphan_scan)

    with pytest.raises(ContourInvariantError) as excinfo:
        trace(square_image, strict=True)
    assert excinfo.value.label == 99


def test_rejects_non_binary_before_tracing(fresh_logger) -> None:
    image = np.array([[0, 17], [255, 0]], dtype=np.uint8)

    with pytest.raises(InvalidRasterError):
        ContourTracer().trace(ArrayRaster(image))
    assert fresh_logger.entries == []
