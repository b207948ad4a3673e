import json

import numpy as np

from sgdnet.core.minibatch import MiniBatchTrainer
from sgdnet.core.network import Network
from sgdnet.core.types import Example
from sgdnet.reporting.tracing import NULL_TRACER, TimingTracer


def _batch(n):
    return [Example.from_label(np.full(3, 0.1 * i), i % 2, 2) for i in range(n)]


def test_training_step_opens_every_phase():
    tracer = TimingTracer()
    with MiniBatchTrainer(Network([3, 4, 2], seed=0), 0.5, workers=2, tracer=tracer) as trainer:
        trainer.step(_batch(4))
    assert tracer.phases() == ["alloc", "backward", "forward", "reduce", "update"]
    summary = tracer.summary()
    assert summary["forward"]["count"] == 4
    # One backward span per layer transition per example.
    assert summary["backward"]["count"] == 8
    assert summary["alloc"]["count"] == 1


def test_per_layer_keys():
    tracer = TimingTracer(per_layer=True)
    with MiniBatchTrainer(Network([3, 4, 4, 2], seed=0), 0.5, tracer=tracer) as trainer:
        trainer.step(_batch(2))
    assert {"backward[0]", "backward[1]", "backward[2]"} <= set(tracer.phases())


def test_null_tracer_records_nothing():
    with NULL_TRACER.span("forward", layer=0):
        pass


def test_write_summary_file(tmp_path):
    tracer = TimingTracer()
    with tracer.span("update"):
        pass
    path = tracer.write(tmp_path / "trace.json")
    data = json.loads(open(path).read())
    assert data["update"]["count"] == 1
    assert data["update"]["total_s"] >= 0.0
