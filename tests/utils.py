"""Shared helpers for the speck test suite."""

from __future__ import annotations

from pathlib import Path

PRODUCTION_DIRS = (".speck/scripts", ".claude/commands", ".claude/agents", ".claude/skills")

EXISTING_FILES = {
    ".speck/scripts/existing-script.ts": '// Existing production script\nexport function run() { console.log("existing"); }\n',
    ".claude/commands/speck.existing-command.md": "---\ndescription: Existing command\n---\n\n# Existing Command\n",
    ".claude/agents/speck.existing-agent.md": "---\ndescription: Existing agent\n---\n\n# Existing Agent\n",
    ".claude/skills/speck.existing-skill.md": "---\ndescription: Existing skill\n---\n\n# Existing Skill\n",
}


def write_file(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
