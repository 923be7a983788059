import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pytest
from chisel.plotting import plot_curve, plot_patch
from chisel.curves import clamped_uniform_b_spline, bezier_curve
from chisel.patches import bezier_patch

@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")

def test_package_exposes_plotting():
    import chisel
    assert chisel.plot_curve is plot_curve
    assert chisel.plot_patch is plot_patch

def test_plot_planar_curve():
    curve = clamped_uniform_b_spline([(0, 0), (1, 2), (2, 0), (3, 1)], 2)
    ax = plot_curve(curve, n=50)
    assert ax.name!="3d"
    assert len(ax.lines)==2
    assert ax.lines[1].get_xydata().shape==(50, 2)

def test_plot_space_curve():
    curve = bezier_curve([(0, 0, 0), (1, 2, 1), (2, 0, 3)])
    ax = plot_curve(curve)
    assert ax.name=="3d"

def test_plot_patch():
    bottom = bezier_curve([(0, 0, 0), (1, 1, 0), (2, 0, 0)])
    top = bezier_curve([(0, 0, 2), (1, 1, 2), (2, 0, 2)])
    fig = plt.figure()
    ax = fig.add_subplot(projection='3d')
    out = plot_patch(bezier_patch([bottom, top]), resolution=5, ax=ax)
    assert out is ax
    # 4 borders and 2 control polygons
    assert len(ax.lines)==6
