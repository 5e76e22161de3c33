"""CLI entrypoint: Typer app definition and command registration"""

import typer

from wxrbook.cli.commands import commit_cmd, import_cmd, init_cmd, list_cmd, stage_cmd


app = typer.Typer(name="wxrbook", no_args_is_help=True, help="Import WordPress (WXR) book exports")

app.command(name="init")(init_cmd)
app.command(name="stage")(stage_cmd)
app.command(name="list")(list_cmd)
app.command(name="commit")(commit_cmd)
app.command(name="import")(import_cmd)
