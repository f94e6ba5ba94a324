import click
import os
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .exceptions import PDFBuilderError
from .generators import MarkdownGenerator
from .pdf_objects import object_at, parse_xref
from .utils import format_file_size, load_config, setup_logging


@click.command()
@click.argument('source', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o',
              type=click.Path(),
              help='Output PDF filename')
@click.option('--config', '-c',
              type=click.Path(exists=True),
              help='Configuration file path')
@click.option('--title',
              help='Document title (also shown in the page header)')
@click.option('--paper-size',
              help='Paper size (A3, A4, A5, Letter, Legal, Tabloid)')
@click.option('--orientation',
              type=click.Choice(['portrait', 'landscape', 'P', 'L'], case_sensitive=False),
              help='Page orientation')
@click.option('--toc/--no-toc',
              default=None,
              help='Include a table of contents')
@click.option('--font-dir',
              multiple=True,
              type=click.Path(exists=True, file_okay=False),
              help='Directory searched for TrueType fonts (can be used multiple times)')
@click.option('--strict-links',
              is_flag=True,
              help='Fail when a link points at an undefined anchor')
@click.option('--verbose', '-v',
              is_flag=True,
              help='Enable verbose logging')
def render(source: str,
           output: Optional[str],
           config: Optional[str],
           title: Optional[str],
           paper_size: Optional[str],
           orientation: Optional[str],
           toc: Optional[bool],
           font_dir: tuple,
           strict_links: bool,
           verbose: bool):
    """
    Render a Markdown file to PDF.

    SOURCE: The Markdown file to render
    """
    try:
        # Load configuration
        config_path = config or 'config.yaml'
        app_config = load_config(config_path)

        # Override config with CLI options
        if toc is not None:
            app_config['pdf']['include_toc'] = toc
        if font_dir:
            app_config['fonts']['search_paths'] = list(font_dir) + list(app_config['fonts']['search_paths'])
        if verbose:
            app_config['logging']['level'] = 'DEBUG'

        # Setup logging
        logger = setup_logging(app_config['logging'])

        if not output:
            output_dir = app_config['directories']['output_dir']
            output = os.path.join(output_dir, Path(source).stem + '.pdf')

        text = Path(source).read_text(encoding='utf-8')
        generator = MarkdownGenerator(app_config)
        output_path = generator.generate(
            text, output,
            base_dir=str(Path(source).parent),
            title=title,
            paper_size=paper_size,
            orientation=orientation,
            strict_links=strict_links or None,
        )
        logger.debug(f"Rendered {source} -> {output_path}")
        click.echo(f"🎉 PDF generated successfully: {output_path} "
                   f"({format_file_size(os.path.getsize(output_path))})")

    except KeyboardInterrupt:
        click.echo("\n⚠️  Rendering interrupted by user")
        sys.exit(1)
    except (PDFBuilderError, OSError, ValueError) as e:
        click.echo(f"❌ Error: {str(e)}")
        if verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


@click.command()
@click.argument('pdf', type=click.Path(exists=True, dir_okay=False))
def inspect(pdf: str):
    """
    Show the cross-reference table of a PDF written by pdfbuilder.

    PDF: The file to inspect
    """
    data = Path(pdf).read_bytes()
    try:
        offsets = parse_xref(data)
    except ValueError as e:
        click.echo(f"❌ Error: {e}")
        sys.exit(1)

    click.echo(f"{'OBJECT':<8} {'OFFSET':<12} {'STATUS'}")
    click.echo(f"{'='*32}")
    broken = 0
    for number, offset in sorted(offsets.items()):
        try:
            found, _ = object_at(data, offset)
            status = 'ok' if found == number else f'points at object {found}'
        except ValueError:
            status = 'no object header'
        if status != 'ok':
            broken += 1
        click.echo(f"{number:<8} {offset:<12} {status}")

    click.echo(f"\n{len(offsets)} objects, {format_file_size(len(data))}")
    if broken:
        click.echo(f"❌ {broken} broken cross-reference entries")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="pdfbuilder")
def main():
    """pdfbuilder - Assemble PDF documents from Markdown text."""
    pass


main.add_command(render)
main.add_command(inspect)


if __name__ == '__main__':
    main()
