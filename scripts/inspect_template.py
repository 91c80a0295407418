import json
import asyncio
import argparse
from pathlib import Path
from typing import Any, Dict, Optional

from setup_logging_optimized import setup_logging
from services.page_templates.editor import initial_token_values, summarize_template
from services.page_templates.models import PageConfig, TextElement, MediaElementBase
from services.page_templates.store import TemplatePagesClient
from services.page_templates.tokens import missing_tokens, substitute


async def fetch_config(template_id: str) -> PageConfig:
    record = await TemplatePagesClient().get(template_id)
    return record.page_config


def load_config(path: Path) -> PageConfig:
    data: Dict[str, Any] = json.loads(path.read_text())
    # Accept either a bare page config or a stored template row
    return PageConfig.model_validate(data.get("page_config", data))


def describe(config: PageConfig, values: Optional[Dict[str, Any]]) -> None:
    summary = summarize_template(config)
    print(f"{summary['element_count']} elements, {summary['dynamic_count']} dynamic, "
          f"{summary['token_count']} tokens, missing-token behavior: {config.missing_token_behavior}")

    for name, definition in config.token_definitions.items():
        print(f"  token {name}: {definition.type} ({definition.label})")

    for element in config.elements:
        line = f"  {element.id} {element.type:<8} {element.element_mode:<7}"
        source = None
        if isinstance(element, TextElement):
            source = element.text.plaintext
        elif isinstance(element, MediaElementBase):
            source = element.url
        if source:
            line += f" {source!r}"
            if values is not None and element.is_dynamic:
                missing = missing_tokens(element.tokens, values)
                line += f" -> {substitute(source, values)!r}"
                if missing:
                    line += f" (missing: {', '.join(missing)})"
        print(line)


def main():
    parser = argparse.ArgumentParser(description="Inspect a saved page template and preview token substitution")
    parser.add_argument("source", help="Path to a page config JSON file, or a template id with --remote")
    parser.add_argument("--remote", action="store_true", help="Fetch the template from the template store")
    parser.add_argument("--values", help="Path to a JSON object of token values to preview")
    parser.add_argument("--defaults", action="store_true", help="Preview using each token's default value")
    args = parser.parse_args()

    setup_logging("WARNING")

    if args.remote:
        config = asyncio.run(fetch_config(args.source))
    else:
        config = load_config(Path(args.source).resolve())

    values = None
    if args.values:
        values = json.loads(Path(args.values).read_text())
    elif args.defaults:
        values = initial_token_values(config.token_definitions)

    describe(config, values)


if __name__ == "__main__":
    main()
