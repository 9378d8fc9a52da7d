"""
Main Entry Point for Daily Timer

Integrates all modules and provides the primary application entry point
with error handling and logging.
"""

import sys
import logging
import traceback
from pathlib import Path
from datetime import datetime
from tkinter import messagebox

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from daily_timer.data_manager import DataManager
from daily_timer.ui import MainWindow


def setup_logging():
    """Setup application logging"""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    log_file = log_dir / f"daily_timer_{datetime.now().strftime('%Y%m%d')}.log"

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )

    return logging.getLogger(__name__)


def check_dependencies():
    """Check if all required dependencies are available"""
    required_modules = [
        'customtkinter',
        'PIL'  # Pillow
    ]

    missing_modules = []

    for module in required_modules:
        try:
            __import__(module)
        except ImportError:
            missing_modules.append(module)

    if missing_modules:
        error_msg = f"Missing required dependencies: {', '.join(missing_modules)}\n"
        error_msg += "Please install them using: pip install -e ."
        raise ImportError(error_msg)


def get_data_dir() -> Path:
    """Directory holding the roster file, created on demand"""
    if getattr(sys, 'frozen', False):
        # Bundled application (e.g. PyInstaller)
        base_path = Path(sys.executable).parent
    else:
        base_path = Path(__file__).parent.parent

    data_dir = base_path / "data"
    data_dir.mkdir(exist_ok=True)
    return data_dir


def handle_exception(exc_type, exc_value, exc_traceback):
    """Global exception handler"""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    logger = logging.getLogger(__name__)
    logger.error(
        "Uncaught exception",
        exc_info=(exc_type, exc_value, exc_traceback)
    )

    # Show error dialog if GUI is available
    try:
        error_msg = f"An unexpected error occurred:\n\n{exc_type.__name__}: {exc_value}"
        messagebox.showerror("Application Error", error_msg)
    except Exception as dialog_error:
        logger.error(f"Could not show error dialog: {dialog_error}")


class DailyTimerApp:
    """Main application class"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.data_manager = None
        self.main_window = None

    def initialize(self):
        """Initialize application components"""
        try:
            self.logger.info("Initializing Daily Timer")

            check_dependencies()
            self.logger.info("All dependencies available")

            data_dir = get_data_dir()
            self.logger.info(f"Persistent data directory: {data_dir}")

            self.data_manager = DataManager(str(data_dir / "daily_timer.json"))
            self.logger.info(f"Roster loaded with {len(self.data_manager.participants)} participants")

            return True

        except Exception as e:
            self.logger.error(f"Failed to initialize application: {e}")
            self.logger.error(traceback.format_exc())
            return False

    def run(self):
        """Run the main application"""
        try:
            if not self.initialize():
                self.show_initialization_error()
                return False

            self.logger.info("Starting GUI application")
            self.main_window = MainWindow(data_manager=self.data_manager)
            self.main_window.mainloop()

            self.logger.info("Application closed normally")
            return True

        except Exception as e:
            self.logger.error(f"Application error: {e}")
            self.logger.error(traceback.format_exc())
            self.show_runtime_error(e)
            return False

        finally:
            self.cleanup()

    def show_initialization_error(self):
        """Show initialization error dialog"""
        try:
            import tkinter as tk
            root = tk.Tk()
            root.withdraw()

            error_msg = """
Failed to initialize Daily Timer.

Please check:
1. All required dependencies are installed (pip install -e .)
2. You have write permissions in the application directory
3. The logs directory for detailed error information
            """
            messagebox.showerror("Initialization Error", error_msg.strip())
            root.destroy()

        except Exception as e:
            print(f"Failed to show initialization error: {e}")

    def show_runtime_error(self, error):
        """Show runtime error dialog"""
        try:
            error_msg = f"""
An error occurred while running the application:

{type(error).__name__}: {str(error)}

The application will now close. Please check the log files
for more detailed information.
            """
            messagebox.showerror("Runtime Error", error_msg.strip())

        except Exception as e:
            print(f"Failed to show runtime error: {e}")

    def cleanup(self):
        """Persist the roster one last time"""
        if self.data_manager and self.data_manager.save_data():
            self.logger.info("Data saved successfully")


def main():
    """Main entry point"""
    sys.excepthook = handle_exception

    logger = setup_logging()
    logger.info("=" * 50)
    logger.info("Starting Daily Timer")
    logger.info("=" * 50)

    app = DailyTimerApp()
    success = app.run()

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
