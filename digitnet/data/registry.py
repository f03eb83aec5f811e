"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping, Tuple

from ..core.errors import ShapeMismatch
from ..core.types import Sample


@dataclass(frozen=True)
class DatasetSpec:
    """A fully loaded dataset ready for training.

    Attributes
    ----------
    name:
        Registry identifier of the dataset.
    train, test:
        Ordered training samples and the held-out evaluation samples.
    num_classes:
        Length of every ``expected_output`` vector.
    input_size:
        Length of every ``inputs`` vector.
    provenance:
        Free-form metadata describing where the samples came from. It is
        copied verbatim into the run manifest.
    """

    name: str
    train: Tuple[Sample, ...]
    test: Tuple[Sample, ...]
    num_classes: int
    input_size: int
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def splits(self) -> Dict[str, int]:
        return {"train": len(self.train), "test": len(self.test)}


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("emnist_csv")
        def load_emnist(**kwargs):
            ...

    or directly::

        register_dataset("synthetic", make_synthetic)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str | None = None, /, **options: Any) -> DatasetSpec:
    """Build the :class:`DatasetSpec` registered under ``dataset``."""

    if dataset is None:
        if "name" in options:
            dataset = str(options.pop("name"))
        else:
            raise TypeError("Dataset name must be provided")

    if dataset not in _REGISTRY:
        raise KeyError(f"Unknown dataset: {dataset}")

    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if not spec.train:
        raise ValueError(f"Dataset {spec.name!r} has no training samples")
    if not spec.test:
        raise ValueError(f"Dataset {spec.name!r} has no test samples")
    for split, samples in (("train", spec.train), ("test", spec.test)):
        for idx, sample in enumerate(samples):
            if sample.inputs.shape[0] != spec.input_size:
                raise ShapeMismatch(
                    f"{spec.name}/{split}[{idx}] has {sample.inputs.shape[0]} inputs, "
                    f"expected {spec.input_size}"
                )
            if sample.expected_output.shape[0] != spec.num_classes:
                raise ShapeMismatch(
                    f"{spec.name}/{split}[{idx}] has {sample.expected_output.shape[0]} "
                    f"outputs, expected {spec.num_classes}"
                )


# Short alias used by the pipelines


def get(dataset: str | None = None, /, **options: Any) -> DatasetSpec:
    """Alias for :func:`get_dataset`."""

    return get_dataset(dataset, **options)


__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get",
    "get_dataset",
    "register_dataset",
]
