import pytest
import torch

from optbook.optimization import projections


def test_l2_ball_projection():
    outside = projections.project_l2_ball(torch.tensor([3.0, 4.0]), radius=1.0)
    assert torch.allclose(outside, torch.tensor([0.6, 0.8]))
    inside = torch.tensor([0.1, 0.2])
    assert torch.equal(projections.project_l2_ball(inside), inside)


def test_l2_ball_with_center():
    out = projections.project_l2_ball(torch.tensor([4.0, 1.0]), radius=2.0, center=torch.tensor([1.0, 1.0]))
    assert torch.allclose(out, torch.tensor([3.0, 1.0]))


def test_l2_ball_rejects_bad_radius():
    with pytest.raises(ValueError):
        projections.project_l2_ball(torch.ones(2), radius=0.0)


def test_box_projection():
    out = projections.project_box(torch.tensor([-2.0, 0.5, 3.0]), 0.0, 1.0)
    assert out.tolist() == [0.0, 0.5, 1.0]
    with pytest.raises(ValueError):
        projections.project_box(torch.zeros(2), 1.0, 0.0)


def test_simplex_projection():
    out = projections.project_simplex(torch.tensor([0.5, 2.0, -1.0]))
    assert float(out.sum()) == pytest.approx(1.0)
    assert bool((out >= 0).all())
    assert torch.allclose(out, torch.tensor([0.0, 1.0, 0.0]))

    already = torch.tensor([0.2, 0.3, 0.5])
    assert torch.allclose(projections.project_simplex(already), already)

    with pytest.raises(ValueError):
        projections.project_simplex(torch.tensor([]))


def test_clip_gradient_norm_in_place():
    grads = [torch.tensor([3.0]), torch.tensor([4.0])]
    norm = projections.clip_gradient_norm(grads, theta=1.0)
    assert norm == pytest.approx(5.0)
    assert float(grads[0]) == pytest.approx(0.6)
    assert float(grads[1]) == pytest.approx(0.8)


def test_clip_gradient_norm_leaves_small_gradients():
    grads = [torch.tensor([0.3, 0.4])]
    assert projections.clip_gradient_norm(grads, theta=1.0) == pytest.approx(0.5)
    assert torch.allclose(grads[0], torch.tensor([0.3, 0.4]))
    assert projections.clip_gradient_norm([], theta=1.0) == 0.0
    with pytest.raises(ValueError):
        projections.clip_gradient_norm(grads, theta=0.0)


def test_projected_gradient_descent_stays_feasible():
    target = torch.tensor([3.0, 0.0])
    trace = projections.projected_gradient_descent(
        lambda x: 2 * (x - target),
        [0.0, 2.0],
        projections.project_l2_ball,
        lr=0.1,
        num_steps=100,
    )
    assert len(trace) == 101
    assert torch.allclose(trace[0], torch.tensor([0.0, 1.0]))
    assert all(float(torch.linalg.vector_norm(x)) <= 1.0 + 1e-6 for x in trace)
    assert torch.allclose(trace[-1], torch.tensor([1.0, 0.0]), atol=1e-3)
