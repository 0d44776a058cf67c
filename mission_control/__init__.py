# Mission Control: project boards, docs, crew, schedule, memory and search
#
# Components:
#   schema.py     - Data model (Project, Task, Member, Document, Folder, ...)
#   storage.py    - Flat-file helpers (JSON, markdown + YAML frontmatter)
#   projects.py   - Project store (one directory per project)
#   tasks.py      - Task store (markdown per task, attachments, comments)
#   documents.py  - Document store and folder tree
#   members.py    - Crew member store
#   scheduled.py  - Weekly scheduled-task store
#   memory.py     - Read-only bot conversation browser
#   search.py     - Global search ranking and excerpts
#   board.py      - Kanban drag reconciler and persistence sync
#   client.py     - HTTP client for the JSON API
#   config.py     - YAML-backed runtime configuration
#   errors.py     - Error taxonomy shared by stores and the server
#   utils.py      - Ids, timestamps and slugs
