"""
Prompt Loading

Prompt files live in company_research/prompts/. Each file has a
"## SYSTEM PROMPT" section and a "## USER PROMPT" section, each ending
at a line containing only "---". The user prompt is a str.format
template.
"""

from functools import lru_cache
from pathlib import Path

from ..config import PROMPTS_DIR


def _read_section(content: str, heading: str) -> str:
    """Lines between `## <heading>` and the next `---`."""
    lines = content.split('\n')
    in_section = False
    section_lines = []

    for line in lines:
        if line.strip() == f"## {heading}":
            in_section = True
            continue
        if in_section and line.strip() == "---":
            break
        if in_section:
            section_lines.append(line)

    return '\n'.join(section_lines).strip()


@lru_cache(maxsize=None)
def load_prompt(filename: str, prompts_dir: Path = PROMPTS_DIR) -> tuple[str, str]:
    """
    Load (system_prompt, user_template) from a prompt file.

    Raises:
        FileNotFoundError: If the prompt file is missing.
        ValueError: If the SYSTEM PROMPT section is empty.
    """
    prompt_file = prompts_dir / filename
    if not prompt_file.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_file}")

    content = prompt_file.read_text(encoding="utf-8")
    system_prompt = _read_section(content, "SYSTEM PROMPT")
    if not system_prompt:
        raise ValueError(f"No '## SYSTEM PROMPT' section in {prompt_file}")
    return system_prompt, _read_section(content, "USER PROMPT")


EXTRACTION_PROMPT_FILE = "company_extraction.txt"
NEWS_PROMPT_FILE = "news_summary.txt"
RECRUITMENT_PROMPT_FILE = "recruitment_summary.txt"
