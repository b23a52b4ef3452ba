import matplotlib.pyplot as plt
import numpy as np

from blobtrace.core.config import Background
from blobtrace.perception.blob_set import BlobSet
from blobtrace.perception.raster import ArrayRaster
from blobtrace.perception.render import DrawOption
from blobtrace.perception.visualize import BlobVisualizer, MatplotlibRenderer


def test_matplotlib_renderer_adds_patches() -> None:
    fig, ax = plt.subplots()
    renderer = MatplotlibRenderer(ax)
    square = np.array([(1, 1), (3, 1), (3, 3), (1, 3)])

    renderer.fill_polygon(square, "blue")
    renderer.draw_polygon(square, "red")
    renderer.draw_label((2.0, 2.0), "1", "black")

    assert len(ax.patches) == 2
    assert [t.get_text() for t in ax.texts] == ["1"]
    plt.close(fig)


def test_plot_blobs_overlays_every_blob(nested_image) -> None:
    blobs = BlobSet(ArrayRaster(nested_image), Background.WHITE).find_connected_components()

    fig, ax = BlobVisualizer.plot_blobs(nested_image, blobs)

    # parent : contour + 4 trous (remplissage + contour) + enveloppe ; enfants : contour + enveloppe
    assert len(ax.patches) == (1 + 4 * 2 + 1) + 4 * 2
    assert len(ax.texts) == 5
    plt.close(fig)


def test_plot_labels_and_save(nested_image, tmp_path) -> None:
    blobs = BlobSet(ArrayRaster(nested_image), Background.WHITE).find_connected_components()

    fig, _ = BlobVisualizer.plot_labels(blobs.get_labeled_image())
    path = tmp_path / "labels.png"
    BlobVisualizer.save(fig, path)
    assert path.exists()

    fig, ax = BlobVisualizer.plot_blobs(nested_image, blobs, options=DrawOption.NONE)
    assert len(ax.patches) == 5
    plt.close(fig)


def test_print_blob_info(square_image, capsys) -> None:
    blob = BlobSet(ArrayRaster(square_image), Background.BLACK).find_connected_components()[0]

    BlobVisualizer.print_blob_info(blob)
    out = capsys.readouterr().out
    assert "Blob #1" in out
    assert "Area: 9.00" in out
