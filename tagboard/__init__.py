# tagboard: kanban board over markdown checkbox lines, driven by status tags
#
# Components:
#   schema.py        - Data model (TaskRecord, ColumnConfig, TagUpdateOp, DragSession, failures)
#   codec.py         - Checkbox line <-> TaskRecord (basic / extended marker sets)
#   classifier.py    - Tags -> column; grouping and sorting per column
#   planner.py       - Tag operations for a column transition
#   mutator.py       - Tag/checkbox rewrites on raw lines, task insertion
#   locator.py       - Find a task's current line in shifted content
#   serialization.py - Cycle-safe snapshot/restore of task records
#   updater.py       - read -> locate -> mutate -> write -> notify pipeline
#   coordinator.py   - Drag & drop state machine
#   store.py         - File store interface + local directory store
#   query.py         - Query engine interface + file-scanning engine
#   notifier.py      - Debounced refresh notifier
#   watcher.py       - watchdog observer for external edits
#   board.py         - Board service wiring it all together
#   config.py        - YAML board configuration
#   server.py        - Flask JSON API and CLI entry point
