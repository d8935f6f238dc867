import random

import pytest

from critscore.pq import PriorityQueue


def test_pops_highest_score_first():
    queue = PriorityQueue()
    queue.push_row(["a"], 1.0)
    queue.push_row(["b"], 3.0)
    queue.push_row(["c"], 2.0)
    assert [queue.pop_row() for _ in range(3)] == [["b"], ["c"], ["a"]]


def test_len_tracks_pushes_and_pops():
    queue = PriorityQueue()
    assert len(queue) == 0
    for i in range(5):
        queue.push_row([str(i)], float(i))
    assert len(queue) == 5
    queue.pop_row()
    assert len(queue) == 4


def test_pop_empty_raises():
    queue = PriorityQueue()
    with pytest.raises(IndexError):
        queue.pop_row()


def test_random_scores_come_out_sorted():
    rng = random.Random(1234)
    queue = PriorityQueue()
    scores = [rng.uniform(-100, 100) for _ in range(200)]
    for score in scores:
        queue.push_row([repr(score)], score)
    popped = []
    while queue:
        popped.append(float(queue.pop_row()[0]))
    assert popped == sorted(scores, reverse=True)


def test_equal_scores_keep_push_order():
    queue = PriorityQueue()
    for name in ["first", "second", "third"]:
        queue.push_row([name], 0.5)
    assert [queue.pop_row()[0] for _ in range(3)] == ["first", "second", "third"]


def test_row_is_returned_unchanged():
    queue = PriorityQueue()
    row = ["repo", "10", "x,y"]
    queue.push_row(row, 7.0)
    assert queue.pop_row() == row