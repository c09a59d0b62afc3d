from tokenbridge_cli.cli import app

app(prog_name="tokenbridge")
