"""Yes/no modal used before quitting and before overwriting a recording."""
from textual.screen import ModalScreen
from textual.containers import Vertical
from textual.widgets import Label
from textual.binding import Binding


class ConfirmationDialog(ModalScreen[bool]):
    """Centered modal that dismisses with True (yes) or False (no)."""

    BINDINGS = [
        Binding("y", "answer(True)", "Yes", show=False),
        Binding("Y", "answer(True)", "Yes", show=False),
        Binding("enter", "answer(True)", "Confirm", show=False),
        Binding("n", "answer(False)", "No", show=False),
        Binding("N", "answer(False)", "No", show=False),
        Binding("escape", "answer(False)", "Cancel", show=False),
    ]

    CSS = """
    ConfirmationDialog {
        align: center middle;
    }

    #dialog {
        width: 56;
        height: auto;
        border: thick cyan;
        background: #101418;
        padding: 1 2;
    }

    #question {
        width: 100%;
        content-align: center middle;
        color: cyan;
    }

    #detail {
        width: 100%;
        content-align: center middle;
        color: #888888;
    }

    #answers {
        width: 100%;
        content-align: center middle;
        margin-top: 1;
    }
    """

    def __init__(self, question: str, detail: str = ""):
        super().__init__()
        self.question = question
        self.detail = detail

    def compose(self):
        with Vertical(id="dialog"):
            yield Label(self.question, id="question")
            if self.detail:
                yield Label(self.detail, id="detail", markup=False)
            yield Label("[Y]es  [N]o", id="answers", markup=False)

    def action_answer(self, value: bool):
        self.dismiss(value)
