"""Manual photo ordering.

The operations here edit the ``order`` field of an album's photos. Photos
carrying ``order`` are displayed before the date-sorted rest, so an album
can be arranged by hand and later reverted to date sorting by clearing it.
"""

from typing import Callable, List, Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .document import Document, Photo, load_document, save_document
from .log import get_logger
from .protocols import PortfolioPaths

LOGGER = get_logger(__name__)


class ReorderError(ValueError):
    """An invalid photo position was given."""


def _check_index(photos: List[Photo], index: int, what: str = "photo number") -> None:
    if not 0 <= index < len(photos):
        raise ReorderError(f"Invalid {what}: {index + 1} (1-{len(photos)})")


def set_sequential_order(photos: List[Photo]) -> None:
    """Number photos 1..N in their current order."""
    for position, photo in enumerate(photos, start=1):
        photo["order"] = position


def clear_order(photos: List[Photo]) -> None:
    for photo in photos:
        photo.pop("order", None)


def move_photo(photos: List[Photo], from_index: int, to_index: int) -> Photo:
    """Move the photo at ``from_index`` to ``to_index`` (0-based) and renumber.

    Raises:
        ReorderError: If either index is out of range
    """
    _check_index(photos, from_index)
    _check_index(photos, to_index, "position")
    photo = photos.pop(from_index)
    photos.insert(to_index, photo)
    set_sequential_order(photos)
    return photo


def swap_photos(photos: List[Photo], first: int, second: int) -> None:
    """Swap two photos (0-based) and renumber.

    Raises:
        ReorderError: If either index is out of range
    """
    _check_index(photos, first)
    _check_index(photos, second)
    photos[first], photos[second] = photos[second], photos[first]
    set_sequential_order(photos)


MENU = (
    ("1", "Set order for all photos (1, 2, 3...)"),
    ("2", "Move specific photo to position"),
    ("3", "Clear all order values (revert to date sorting)"),
    ("4", "Swap two photos"),
    ("5", "Save and exit"),
    ("6", "Exit without saving"),
)


class ReorderSession:
    """Interactive reordering of one album.

    Edits happen on the in-memory document; nothing is written unless the
    operator picks "Save and exit".
    """

    def __init__(
        self,
        paths: PortfolioPaths,
        console: Optional[Console] = None,
        ask: Callable[..., str] = Prompt.ask,
        confirm: Callable[..., bool] = Confirm.ask,
    ):
        self.paths = paths
        self.console = console or Console()
        self._ask = ask
        self._confirm = confirm

    def ask(self, prompt: str) -> str:
        return self._ask(prompt, console=self.console).strip()

    def ask_number(self, prompt: str) -> Optional[int]:
        """0-based index from a 1-based answer, None if it is not a number."""
        answer = self.ask(prompt)
        try:
            return int(answer) - 1
        except ValueError:
            self.console.print(f"[red]Not a number: {answer!r}[/]")
            return None

    def select_album(self, document: Document) -> str:
        names = list(document)
        table = Table(title="Available Albums")
        table.add_column("#", justify="right", style="bold yellow")
        table.add_column("Album", style="cyan")
        table.add_column("Photos", justify="right")
        for number, name in enumerate(names, start=1):
            table.add_row(str(number), name, str(len(document[name].get("images", []))))
        self.console.print(table)

        while True:
            index = self.ask_number("Enter album number")
            if index is not None and 0 <= index < len(names):
                return names[index]
            self.console.print("[red]Invalid album selection[/]")

    def show_photos(self, photos: List[Photo]) -> None:
        table = Table(title="Current Photo Order")
        table.add_column("#", justify="right", style="bold yellow")
        table.add_column("Title", style="white")
        table.add_column("Order", justify="right", style="cyan")
        table.add_column("Date", style="dim")
        for number, photo in enumerate(photos, start=1):
            order = photo.get("order")
            table.add_row(
                str(number),
                str(photo.get("title") or photo.get("id")),
                "-" if order is None else str(order),
                str(photo.get("date", "")),
            )
        self.console.print(table)

    def menu(self, photos: List[Photo]) -> bool:
        """Run the edit loop; True means save, False means discard."""
        while True:
            self.show_photos(photos)
            for key, label in MENU:
                self.console.print(f"  [bold]{key}[/]. {label}")
            choice = self.ask("Select option")

            try:
                if choice == "1":
                    set_sequential_order(photos)
                    self.console.print("[green]Sequential order applied[/]")
                elif choice == "2":
                    source = self.ask_number("Enter photo number to move")
                    if source is None:
                        continue
                    target = self.ask_number("Enter new position")
                    if target is None:
                        continue
                    photo = move_photo(photos, source, target)
                    self.console.print(
                        f"[green]Moved \"{photo.get('title')}\" to position {target + 1}[/]"
                    )
                elif choice == "3":
                    if self._confirm(
                        "Clear all order values? This will revert to date sorting.",
                        console=self.console,
                    ):
                        clear_order(photos)
                        self.console.print("[green]All order values cleared[/]")
                elif choice == "4":
                    first = self.ask_number("Enter first photo number")
                    if first is None:
                        continue
                    second = self.ask_number("Enter second photo number")
                    if second is None:
                        continue
                    swap_photos(photos, first, second)
                    self.console.print(
                        f"[green]Swapped photos at positions {first + 1} and {second + 1}[/]"
                    )
                elif choice == "5":
                    return True
                elif choice == "6":
                    return False
                else:
                    self.console.print("[red]Invalid option[/]")
            except ReorderError as exc:
                self.console.print(f"[red]{exc}[/]")

    def run(self, album: Optional[str] = None) -> bool:
        """Reorder one album interactively.

        Returns:
            True if changes were saved

        Raises:
            DocumentError: If the document cannot be read or written
        """
        document = load_document(self.paths.document)
        if not document:
            self.console.print("[yellow]No albums to reorder[/]")
            return False

        if album is None or album not in document:
            if album is not None:
                self.console.print(f"[red]Album '{album}' not found[/]")
            album = self.select_album(document)

        photos = document[album].setdefault("images", [])
        LOGGER.debug("Reordering %s (%d photos)", album, len(photos))
        self.console.print(f"\nWorking with album: [bold cyan]{album}[/] ({len(photos)} photos)")

        if self.menu(photos):
            save_document(document, self.paths.document)
            self.console.print("[green]Changes saved[/]")
            return True
        self.console.print("[yellow]Changes discarded[/]")
        return False
