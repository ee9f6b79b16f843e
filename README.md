# aistack

Building blocks for running a local AI service stack (Ollama, Open WebUI,
LocalAI) on a Linux workstation:

- **Auto-suspend** (`aistack.suspend`): measures CPU and optional GPU
  activity, keeps a small JSON state file with the last time the machine
  was busy, and runs `systemctl suspend` once it has been idle for five
  minutes.
- **Terminal menu model** (`aistack.tui`): screens, menu items, key
  handling and text rendering for a keyboard-driven control panel, with its
  UI state persisted between runs.

The package has no runtime dependencies beyond the standard library.

## Auto-suspend

### State

`aistack.suspend.state.SuspendStateManager` keeps a `State` (`enabled`,
`last_active_timestamp`) in a JSON file. Without an argument the file is
`suspend_state.json` in the directory returned by `state_dir()`:
`/var/lib/aistack`, or the absolute form of `AISTACK_STATE_DIR` when that
variable is set. Writes go through a temporary file and an atomic rename.

```python
from pathlib import Path

from aistack.suspend.state import SuspendStateManager, state_dir

manager = SuspendStateManager(Path(state_dir()) / "suspend_state.json")

state = manager.load_state()        # created enabled, and saved, on first use
print(state.enabled, manager.idle_duration(state))
print(manager.should_suspend(state))  # enabled and idle for >= 300 s

manager.disable()
manager.enable()                    # also resets the idle timer
manager.reset_activity_timestamp()  # e.g. after resume
```

Read, parse and write failures raise `aistack.suspend.state.SuspendError`.

### Detection

`aistack.suspend.detector.ActivityDetector` samples the aggregate CPU
counters of `/proc/stat` twice, `interval` seconds apart (1 second by
default), and asks an optional `gpu_probe` callable for the GPU
utilisation in percent. The probe returns `None` when there is no GPU;
if it is missing or raises, the machine is treated as having no GPU
(reported as `-1.0`).

The system counts as idle when CPU use is below 10 % and the GPU is either
absent or below 5 %. `detect_activity()` returns an `ActivityStatus`
(`is_idle`, `cpu_percent`, `gpu_percent`, `timestamp`). With the default
`/proc/stat` it raises `SuspendError` on anything other than Linux; a
different `stat_path` can be given for another file in the same format.

The helpers `read_cpu_sample(path)` and `cpu_percent(before, after)` are
available on their own.

### The periodic check

`aistack.suspend.executor.SuspendExecutor` ties the detector and the state
together. Call `check_and_suspend()` periodically, for example from a
systemd timer every 60 seconds:

```python
from aistack.suspend.detector import ActivityDetector
from aistack.suspend.executor import SuspendExecutor

executor = SuspendExecutor(
    detector=ActivityDetector(),
    manager=manager,
    dry_run=True,   # log only; set to False to really suspend
)
outcome = executor.check_and_suspend()
print(outcome)
```

It returns a `SuspendOutcome`:

- `DISABLED` – auto-suspend is off, nothing was measured;
- `ACTIVE` – the system was busy and the idle timer was reset;
- `IDLE` – idle, but the 300-second timeout has not been reached;
- `DRY_RUN` – the timeout was reached, but `dry_run` is set;
- `SUSPENDED` – the suspend command (`("systemctl", "suspend")` unless
  `command` says otherwise) ran successfully.

A failing command raises `SuspendError`.

## Terminal menu

`aistack.tui.types` defines the `Screen` enum, `MenuItem`, the persisted
`UIState` and `default_menu_items()`:

```python
from aistack.tui.model import Model
from aistack.tui.types import default_menu_items

for item in default_menu_items():
    print(item.key, item.label, "-", item.description)

model = Model(compose_dir="/opt/aistack/compose", state_dir="/tmp/aistack-state")
model.update("down")
model.update("enter")
print(model.view())
```

`Model.update(key)` takes key names as strings (`"up"`, `"down"`, `"k"`,
`"j"`, `"enter"`, `" "`, `"esc"`, `"q"`, `"ctrl+c"`, letters and digits)
and returns `True` when the application should quit. `Model.view()`
returns the current screen as text.

Keys on the main menu: `up`/`down` (or `k`/`j`) to move, `enter`/space to
select, the digit or `?` shown next to an entry to jump straight to it,
`esc` to return to the menu and `q` or `ctrl+c` to quit. On the other
screens:

- **Status**: `b` switches Open WebUI between Ollama and LocalAI, `r`
  reloads backend and GPU information.
- **Install/Uninstall**: `up`/`down` pick a service (ollama, openwebui,
  localai), `i` installs, `u` uninstalls keeping its data, `r` refreshes.
- **Logs**: `up`/`down` pick a service, `enter`/space or `r` loads its
  last 50 log lines.
- **Models**: `up`/`down` pick a provider (ollama, localai), `l` lists
  cached models, `s` shows cache statistics, `r` clears the display.
- **Diagnostics** and **Settings** show a placeholder.

The current screen, selection and last error are saved to `ui_state.json`
in the state directory (`AISTACK_STATE_DIR` or `/var/lib/aistack` when
none is given) through `aistack.tui.state.UIStateManager`, and restored on
the next start. Its `save_error()` and `clear_error()` edit only the error
message; failures raise `UIStateError`.

Rendering (`aistack.tui.menu`) uses 24-bit ANSI colours when standard
output is a terminal or `FORCE_COLOR` is set, and plain text when
`NO_COLOR` is set or output is redirected.

## What the package does not do

- There is no command-line program: nothing here runs the suspend check on
  a timer or drives `Model` from a real terminal. Both are meant to be
  called from your own script or service.
- The TUI does not know how to manage services, detect GPUs or read the
  backend binding itself. Pass a `service_manager` (with
  `get_service(name)` returning objects that have `install()`,
  `remove(keep_data)`, `logs(lines)`, and for `openwebui` also
  `current_backend()` and `switch_backend(target)`), a `gpu_probe` and a
  `backend_probe` (returning `(backend, url)`) to `Model`. Without them the
  related actions report an error or show nothing.
- The model cache view (`aistack.tui.cache.ModelsStateManager`) always
  reports no cached models and empty statistics.
- GPU utilisation is only read through the `gpu_probe` you supply; no GPU
  library is bundled.

## Running the tests

Install the `test` extra and run `pytest` from the project root.