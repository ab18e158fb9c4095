import re
from datetime import timedelta


class TimeParser:
    def __init__(self) -> None:
        self._units = {
            "ms": "milliseconds",
            "s": "seconds",
            "m": "minutes",
            "h": "hours",
            "d": "days",
            "w": "weeks",
        }

    def parse(self, time_amount: str | int | float | None) -> float | None:
        if time_amount is None:
            return None

        if isinstance(time_amount, (int, float)):
            return float(time_amount)

        matches = list(
            re.finditer(
                r"(?P<val>\d+(\.\d+)?)\s*(?P<unit>ms|[smhdw]?)",
                time_amount.strip(),
                flags=re.I,
            )
        )

        if len(matches) == 0:
            raise ValueError(f"Err. - could not parse duration {time_amount!r}")

        amounts: dict[str, float] = {}
        for match in matches:
            unit = self._units.get(match.group("unit").lower(), "seconds")
            amounts[unit] = amounts.get(unit, 0.0) + float(match.group("val"))

        return float(timedelta(**amounts).total_seconds())
