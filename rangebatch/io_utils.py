from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


def make_bounded_progress() -> Progress:
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        "•",
        TimeElapsedColumn(),
        "•",
        TimeRemainingColumn(),
        transient=True,
    )


def make_spinner_progress(unit: str = "lines scanned") -> Progress:
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        SpinnerColumn(),
        TextColumn(f"{{task.completed:,}} {unit}"),
        "•",
        TimeElapsedColumn(),
        transient=True,
    )
