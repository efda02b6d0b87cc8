"""CLI entrypoint: Typer app definition and command registration"""

import typer

from mdxport.cli.commands import convert_cmd, templates_cmd


app = typer.Typer(name="mdxport", no_args_is_help=True, help="Convert Markdown to PDF through Typst")

app.command(name="convert")(convert_cmd)
app.command(name="templates")(templates_cmd)
