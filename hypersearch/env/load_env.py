import os
from typing import Callable, Dict, Mapping, TypeVar, Union

from dotenv import dotenv_values

from .env import Env

T = TypeVar("T", bound=Env)

PrimaryType = Union[str, int, bool, float, bytes]


def load_env(
    default: type[T] = Env,
    env_file: str | None = None,
    override: T | None = None,
) -> T:
    """
    Build settings from the process environment, then an env file
    (``.env`` in the working directory unless given), then the fields
    explicitly set on ``override``. Later sources win.
    """
    types_map = default.types_map()

    values = read_values(os.environ, types_map)

    env_file = env_file or ".env"
    if os.path.exists(env_file):
        values.update(read_values(dotenv_values(dotenv_path=env_file), types_map))

    if override is not None:
        values.update(override.model_dump(exclude_unset=True, exclude_none=True))
        default = type(override)

    return default(**values)


def read_values(
    source: Mapping[str, str | None],
    types_map: Dict[str, Callable[[str], PrimaryType]],
) -> Dict[str, PrimaryType]:
    """Convert the known, non-empty variables of ``source`` to their field types."""
    return {
        name: convert(value)
        for name, convert in types_map.items()
        if (value := source.get(name))
    }
