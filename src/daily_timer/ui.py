"""
User Interface for Daily Timer

CustomTkinter-based GUI with a setup screen for picking today's
participants, a compact session screen with the running countdown, and a
roster editor.
"""

import customtkinter as ctk
from PIL import Image, ImageDraw
from typing import Callable, Dict, Optional
import logging
import random

from .controller import DailyController, Screen, SESSION_WINDOW_SIZE
from .data_manager import DataManager, Participant
from .session_logic import CountdownTimer, SessionSequencer

logger = logging.getLogger(__name__)


# Configure CustomTkinter
ctk.set_appearance_mode("light")
ctk.set_default_color_theme("blue")

WARNING_THRESHOLD_SECONDS = 10
EDITOR_WINDOW_WIDTH = 520


def create_alert_image(size: int = 38) -> ctk.CTkImage:
    """Red flame shown once a participant's time is up"""
    scale = 4
    canvas = size * scale
    image = Image.new("RGBA", (canvas, canvas), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)

    outer = [
        (0.50, 0.02), (0.66, 0.24), (0.80, 0.40), (0.88, 0.62), (0.80, 0.84),
        (0.62, 0.97), (0.38, 0.97), (0.20, 0.84), (0.12, 0.62), (0.22, 0.42),
        (0.34, 0.52), (0.38, 0.30),
    ]
    inner = [
        (0.52, 0.42), (0.64, 0.62), (0.66, 0.80), (0.56, 0.92), (0.44, 0.92),
        (0.34, 0.80), (0.38, 0.64), (0.46, 0.70),
    ]
    draw.polygon([(x * canvas, y * canvas) for x, y in outer], fill=(220, 38, 38, 255))
    draw.polygon([(x * canvas, y * canvas) for x, y in inner], fill=(251, 146, 60, 255))

    image = image.resize((size, size), Image.LANCZOS)
    return ctk.CTkImage(light_image=image, dark_image=image, size=(size, size))


class SetupFrame(ctk.CTkFrame):
    """Participant selection, timeout and session start"""

    def __init__(self, parent, data_manager: DataManager, controller: DailyController,
                 on_start: Callable = None, on_edit: Callable = None):
        super().__init__(parent)
        self.data_manager = data_manager
        self.controller = controller
        self.on_start = on_start
        self.on_edit = on_edit
        self._selection_vars: Dict[str, ctk.BooleanVar] = {}

        self._create_widgets()
        self.refresh()

    def _create_widgets(self):
        ctk.CTkLabel(
            self,
            text="Daily time!",
            font=ctk.CTkFont(size=20, weight="bold")
        ).pack(pady=(10, 5))

        self.list_frame = ctk.CTkScrollableFrame(self)
        self.list_frame.pack(fill="both", expand=True, padx=10, pady=5)

        # Timeout field
        timeout_frame = ctk.CTkFrame(self, fg_color="transparent")
        timeout_frame.pack(pady=5)

        ctk.CTkLabel(timeout_frame, text="Timeout (seconds):").pack(side="left", padx=5)

        self.timeout_var = ctk.StringVar(value=str(self.controller.timer_seconds))
        self.timeout_entry = ctk.CTkEntry(timeout_frame, textvariable=self.timeout_var, width=60)
        self.timeout_entry.pack(side="left", padx=5)
        self.timeout_entry.bind("<Return>", lambda e: self._commit_timeout())
        self.timeout_entry.bind("<FocusOut>", lambda e: self._commit_timeout())

        # Summary
        self.count_label = ctk.CTkLabel(self, text="", font=ctk.CTkFont(size=12))
        self.count_label.pack(pady=(10, 0))
        self.total_label = ctk.CTkLabel(self, text="", font=ctk.CTkFont(size=12))
        self.total_label.pack()

        # Actions
        button_frame = ctk.CTkFrame(self, fg_color="transparent")
        button_frame.pack(pady=10)

        ctk.CTkButton(
            button_frame,
            text="START",
            command=self._start,
            width=100
        ).pack(side="left", padx=5)

        ctk.CTkButton(
            button_frame,
            text="Edit Users",
            command=self._edit,
            width=100
        ).pack(side="left", padx=5)

        self.status_label = ctk.CTkLabel(self, text="", text_color="red", font=ctk.CTkFont(size=11))
        self.status_label.pack()

    def refresh(self):
        """Rebuild the participant list and summary"""
        for widget in self.list_frame.winfo_children():
            widget.destroy()
        self._selection_vars.clear()

        for participant in self.data_manager.get_participants():
            self._create_participant_item(participant)

        self.timeout_var.set(str(self.controller.timer_seconds))
        self.refresh_summary()

    def _create_participant_item(self, participant: Participant):
        var = ctk.BooleanVar(value=participant.selected)
        self._selection_vars[participant.id] = var

        checkbox = ctk.CTkCheckBox(
            self.list_frame,
            text=participant.name,
            variable=var,
            command=lambda: self._on_selection_change(participant.id)
        )
        checkbox.pack(anchor="w", padx=10, pady=4)

    def _on_selection_change(self, participant_id: str):
        var = self._selection_vars.get(participant_id)
        if var is not None:
            self.data_manager.set_selected(participant_id, var.get())

    def refresh_summary(self):
        self.count_label.configure(text=f"Teammates today: {self.controller.selected_count}")
        self.total_label.configure(text=f"Total time: {self.controller.total_minutes} minutes")

    def _commit_timeout(self) -> bool:
        if not self.controller.update_timeout(self.timeout_var.get()):
            self.timeout_var.set(str(self.controller.timer_seconds))
            return False
        return True

    def _start(self):
        self._commit_timeout()
        if self.on_start and not self.on_start():
            self.status_label.configure(text="Select at least one teammate")
        else:
            self.status_label.configure(text="")

    def _edit(self):
        self._commit_timeout()
        self.status_label.configure(text="")
        if self.on_edit:
            self.on_edit()


class SessionFrame(ctk.CTkFrame):
    """Current participant with countdown, or the end view"""

    def __init__(self, parent, controller: DailyController, on_next: Callable = None,
                 on_back: Callable = None, on_exit: Callable = None):
        super().__init__(parent)
        self.controller = controller
        self.on_next = on_next
        self.on_back = on_back
        self.on_exit = on_exit
        self.alert_image = create_alert_image()

        self._create_widgets()

    def _create_widgets(self):
        # Participant view
        self.speaker_frame = ctk.CTkFrame(self, fg_color="transparent")

        self.name_label = ctk.CTkLabel(
            self.speaker_frame,
            text="",
            font=ctk.CTkFont(size=30, weight="bold")
        )
        self.name_label.pack(pady=(10, 5))

        self.countdown_label = ctk.CTkLabel(self.speaker_frame, text="", font=ctk.CTkFont(size=38))
        self.alert_label = ctk.CTkLabel(self.speaker_frame, text="", image=self.alert_image)

        self.position_label = ctk.CTkLabel(
            self.speaker_frame,
            text="",
            text_color="gray",
            font=ctk.CTkFont(size=10)
        )
        self.position_label.pack(side="bottom")

        self.next_button = ctk.CTkButton(
            self.speaker_frame,
            text="Next",
            command=self._next,
            width=80
        )
        self.next_button.pack(side="bottom", pady=10)

        # End view
        self.end_frame = ctk.CTkFrame(self, fg_color="transparent")

        ctk.CTkLabel(
            self.end_frame,
            text="END",
            font=ctk.CTkFont(size=32, weight="bold")
        ).pack(pady=20)

        ctk.CTkButton(
            self.end_frame,
            text="EXIT",
            command=self._exit,
            width=80
        ).pack(pady=(10, 5))

        ctk.CTkButton(
            self.end_frame,
            text="New daily",
            command=self._back,
            width=80
        ).pack(pady=5)

    def render(self):
        """Show either the current participant or the end view"""
        participant = self.controller.current_participant()
        if participant is None:
            self.speaker_frame.pack_forget()
            self.end_frame.pack(fill="both", expand=True)
            return

        self.end_frame.pack_forget()
        self.speaker_frame.pack(fill="both", expand=True)
        self.name_label.configure(text=participant.name)
        sequencer = self.controller.sequencer
        self.position_label.configure(text=f"{sequencer.position} / {len(sequencer.queue)}")
        self.update_timer(sequencer.timer)

    def update_timer(self, timer: CountdownTimer):
        if timer.expired:
            self.countdown_label.pack_forget()
            self.alert_label.pack(pady=5, after=self.name_label)
        else:
            self.alert_label.pack_forget()
            color = "red" if timer.remaining < WARNING_THRESHOLD_SECONDS else "green"
            self.countdown_label.configure(text=str(timer.remaining), text_color=color)
            self.countdown_label.pack(pady=5, after=self.name_label)

    def _next(self):
        if self.on_next:
            self.on_next()

    def _back(self):
        if self.on_back:
            self.on_back()

    def _exit(self):
        if self.on_exit:
            self.on_exit()


class EditorFrame(ctk.CTkFrame):
    """Roster editor: rename, admin flag, reorder, delete, add"""

    def __init__(self, parent, data_manager: DataManager, on_back: Callable = None):
        super().__init__(parent)
        self.data_manager = data_manager
        self.on_back = on_back
        self._name_vars: Dict[str, ctk.StringVar] = {}

        self._create_widgets()

    def _create_widgets(self):
        ctk.CTkLabel(
            self,
            text="User Management",
            font=ctk.CTkFont(size=20, weight="bold")
        ).pack(pady=10)

        self.list_frame = ctk.CTkScrollableFrame(self)
        self.list_frame.pack(fill="both", expand=True, padx=10, pady=5)

        button_frame = ctk.CTkFrame(self, fg_color="transparent")
        button_frame.pack(pady=10)

        ctk.CTkButton(
            button_frame,
            text="+ Add User",
            command=self._add_participant,
            width=100
        ).pack(side="left", padx=5)

        ctk.CTkButton(
            button_frame,
            text="Back",
            command=self._back,
            width=100
        ).pack(side="left", padx=5)

    def refresh(self):
        for widget in self.list_frame.winfo_children():
            widget.destroy()
        self._name_vars.clear()

        participants = self.data_manager.get_participants()
        for index, participant in enumerate(participants):
            self._create_participant_row(index, participant, len(participants))

    def _create_participant_row(self, index: int, participant: Participant, count: int):
        row = ctk.CTkFrame(self.list_frame)
        row.pack(fill="x", padx=5, pady=3)

        name_var = ctk.StringVar(value=participant.name)
        self._name_vars[participant.id] = name_var
        name_entry = ctk.CTkEntry(row, textvariable=name_var, placeholder_text="Name", width=180)
        name_entry.pack(side="left", padx=5, pady=5)
        name_entry.bind("<Return>", lambda e: self._commit_name(participant.id))
        name_entry.bind("<FocusOut>", lambda e: self._commit_name(participant.id))

        admin_var = ctk.BooleanVar(value=participant.is_admin)
        ctk.CTkSwitch(
            row,
            text="Admin",
            variable=admin_var,
            command=lambda: self.data_manager.set_admin(participant.id, admin_var.get()),
            width=80
        ).pack(side="left", padx=5)

        ctk.CTkButton(
            row,
            text="🗑",
            width=30,
            height=25,
            fg_color="red",
            command=lambda: self._delete_participant(index)
        ).pack(side="right", padx=5)

        ctk.CTkButton(
            row,
            text="▼",
            width=25,
            height=25,
            state="normal" if index < count - 1 else "disabled",
            command=lambda: self._move_participant(index, index + 2)
        ).pack(side="right", padx=2)

        ctk.CTkButton(
            row,
            text="▲",
            width=25,
            height=25,
            state="normal" if index > 0 else "disabled",
            command=lambda: self._move_participant(index, index - 1)
        ).pack(side="right", padx=2)

    def _commit_name(self, participant_id: str):
        var = self._name_vars.get(participant_id)
        if var is not None:
            self.data_manager.rename_participant(participant_id, var.get())

    def commit_names(self):
        """Push any pending name edits into the roster"""
        for participant_id in list(self._name_vars):
            self._commit_name(participant_id)

    def _add_participant(self):
        self.commit_names()
        participant = self.data_manager.add_participant()
        logger.info(f"Participant {participant.id} added from editor")
        self.refresh()

    def _delete_participant(self, index: int):
        self.commit_names()
        self.data_manager.delete_participants([index])
        self.refresh()

    def _move_participant(self, index: int, destination: int):
        self.commit_names()
        self.data_manager.move_participants([index], destination)
        self.refresh()

    def _back(self):
        self.commit_names()
        if self.on_back:
            self.on_back()


class MainWindow(ctk.CTk):
    """Main application window"""

    def __init__(self, data_manager: DataManager, rng: Optional[random.Random] = None):
        super().__init__()

        self.title("Daily Timer")
        self.attributes("-topmost", True)

        self.data_manager = data_manager
        # The window itself provides after/after_cancel for the countdown
        self.timer = CountdownTimer(self, on_change=self._on_timer_change)
        self.sequencer = SessionSequencer(self.timer, rng=rng)
        self.controller = DailyController(data_manager, self.sequencer)

        self._create_widgets()

        self.controller.add_listener(self._on_screen_change)
        self.data_manager.subscribe(self._on_data_change)
        self.protocol("WM_DELETE_WINDOW", self._exit)

        self._show_screen(Screen.SETUP)

    def _create_widgets(self):
        self.setup_frame = SetupFrame(
            self,
            self.data_manager,
            self.controller,
            on_start=self.controller.start_session,
            on_edit=self.controller.open_editor
        )
        self.session_frame = SessionFrame(
            self,
            self.controller,
            on_next=self.controller.next_participant,
            on_back=self.controller.return_to_setup,
            on_exit=self._exit
        )
        self.editor_frame = EditorFrame(
            self,
            self.data_manager,
            on_back=self.controller.close_editor
        )

    def _on_screen_change(self, screen: Screen):
        self._show_screen(screen)

    def _show_screen(self, screen: Screen):
        frames = {
            Screen.SETUP: self.setup_frame,
            Screen.SESSION: self.session_frame,
            Screen.EDITOR: self.editor_frame,
        }
        for key, frame in frames.items():
            if key != screen:
                frame.pack_forget()

        if screen == Screen.SETUP:
            self.setup_frame.refresh()
            self._resize_window(*self.controller.setup_window_size())
        elif screen == Screen.SESSION:
            self.session_frame.render()
            self._resize_window(*SESSION_WINDOW_SIZE)
        else:
            self.editor_frame.refresh()
            _, height = self.controller.setup_window_size()
            self._resize_window(EDITOR_WINDOW_WIDTH, height)

        frames[screen].pack(fill="both", expand=True, padx=10, pady=10)

    def _resize_window(self, width: int, height: int):
        self.minsize(width, height)
        self.maxsize(width, height)
        self.geometry(f"{width}x{height}")

    def _on_timer_change(self, timer: CountdownTimer):
        if self.controller.screen == Screen.SESSION and self.controller.current_participant():
            self.session_frame.update_timer(timer)

    def _on_data_change(self):
        if self.controller.screen == Screen.SETUP:
            self.setup_frame.refresh_summary()

    def _exit(self):
        """Stop any countdown and close the window, ending the main loop"""
        logger.info("Exit requested")
        self.sequencer.reset()
        self.data_manager.unsubscribe(self._on_data_change)
        self.destroy()


def main():
    """Main entry point for the UI"""
    data_manager = DataManager()
    app = MainWindow(data_manager=data_manager)
    app.mainloop()


if __name__ == "__main__":
    main()
