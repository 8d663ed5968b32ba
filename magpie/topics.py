"""Discussion topics: literal text or a Markdown file with optional frontmatter."""

from pathlib import Path

import frontmatter


def parse_topic_file(file_path: Path) -> tuple[str, dict]:
    """Parse a markdown file with optional YAML frontmatter.

    Returns:
        (content, metadata) where content is the body text and metadata
        may carry: rounds (int), reviewers (str, comma-separated), converge (bool).
        If no frontmatter, metadata is {}.
    """
    post = frontmatter.load(str(file_path))
    return post.content.strip(), dict(post.metadata)


def resolve_topic(topic: str) -> tuple[str, dict, str]:
    """Return (text, metadata, source) for a topic argument.

    An existing file path is read (with frontmatter); anything else is the topic itself.
    """
    path = Path(topic)
    try:
        is_file = path.is_file()
    except OSError:
        # Long topic strings can exceed the OS path length limit
        is_file = False
    if is_file:
        content, metadata = parse_topic_file(path)
        return content, metadata, str(path)
    return topic.strip(), {}, "cli"


def build_discuss_prompt(topic: str) -> str:
    return (
        "Please discuss the following topic. Provide your independent analysis, identify key "
        f"considerations, trade-offs, and give concrete recommendations.\n\n{topic}"
    )
