import numpy as np
import pytest
from chisel.geometries import circle_arc, circle, ellipse, unit_circle, cylinder

def test_circle_radius():
    c = circle((1, 2, 3), 2.5)
    pts = c.sample(101)
    np.testing.assert_allclose(np.linalg.norm(pts - np.array([[1], [2], [3]]), axis=0), 2.5, atol=1e-12)
    np.testing.assert_allclose(pts[2], 3., atol=1e-12)
    assert c.degrees==(2, 2, 2, 2)
    np.testing.assert_allclose(c(0.), c(1.), atol=1e-12)

def test_circle_normal():
    c = circle(radius=1., normal=(1, 0, 0))
    pts = c.sample(33)
    np.testing.assert_allclose(pts[0], 0., atol=1e-12)
    np.testing.assert_allclose(np.linalg.norm(pts, axis=0), 1., atol=1e-12)

def test_circle_arc():
    arc = circle_arc(radius=2., start_angle=0., end_angle=3*np.pi/4)
    assert len(arc.segments)==2
    np.testing.assert_allclose(arc(0.), [2, 0, 0], atol=1e-12)
    np.testing.assert_allclose(arc(1.), [-np.sqrt(2), np.sqrt(2), 0], atol=1e-12)
    np.testing.assert_allclose(np.linalg.norm(arc.sample(21), axis=0), 2., atol=1e-12)
    w = arc.weights()
    np.testing.assert_allclose(w[1], np.cos(3*np.pi/16))

def test_circle_arc_errors():
    with pytest.raises(ValueError):
        circle_arc(start_angle=1., end_angle=1.)
    with pytest.raises(ValueError):
        circle_arc(end_angle=7.)
    with pytest.raises(ValueError):
        circle_arc(radius=0.)

def test_ellipse():
    e = ellipse((0, 0, 0), 3., 1.)
    x, y, z = e.sample(61)
    np.testing.assert_allclose((x/3)**2 + y**2, 1., atol=1e-12)
    with pytest.raises(ValueError):
        ellipse(a=-1.)

def test_unit_circle_is_shared():
    assert unit_circle() is unit_circle()
    np.testing.assert_allclose(np.linalg.norm(unit_circle().sample(17), axis=0), 1., atol=1e-12)

def test_cylinder():
    cyl = cylinder((0, 0, 1), 2., 3.)
    pts = cyl.grid(np.linspace(0, 1, 9), np.linspace(0, 1, 4))
    np.testing.assert_allclose(np.linalg.norm(pts[:2], axis=0), 2., atol=1e-12)
    np.testing.assert_allclose(pts[2, :, 0], 1., atol=1e-12)
    np.testing.assert_allclose(pts[2, :, -1], 4., atol=1e-12)
    with pytest.raises(ValueError):
        cylinder(height=0.)
