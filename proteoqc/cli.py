from pathlib import Path
from typing import Optional

import typer

from proteoqc.exceptions import ProteoQCError
from proteoqc.metrics.registry import build_registry
from proteoqc.workflow.config import QCConfig

app = typer.Typer(help="ProteoQC: quality control reports for proteomics search engine output")


@app.command()
def init(path: Path = typer.Argument(Path("proteoqc_config.yaml"), help="Where to write the config")):
    """
    Write the default configuration (every threshold and metric switch) to the given path.
    """
    config = QCConfig()
    build_registry(config)
    config.write_yaml(path)
    typer.echo(f"Default configuration written to {path}")


@app.command()
def run(
    txt_folder: Optional[Path] = typer.Option(None, "--txt-folder", help="Search engine txt output folder"),
    mztab_file: Optional[Path] = typer.Option(None, "--mztab-file", help="mzTab file"),
    config: Optional[Path] = typer.Option(None, help="Path to YAML config file"),
    log: bool = typer.Option(False, "--log", help="Also write the log next to the report"),
):
    """
    Create a QC report. Give exactly one of --txt-folder / --mztab-file.
    """
    if (txt_folder is None) == (mztab_file is None):
        raise typer.BadParameter("Specify exactly one of --txt-folder or --mztab-file.")

    from proteoqc.main import create_report
    from proteoqc.utils.cli_setup import configure_cli_display

    configure_cli_display()
    try:
        qc_config = QCConfig.from_yaml(config) if config is not None else QCConfig()
        create_report(txt_folder=txt_folder, mztab_file=mztab_file, config=qc_config, enable_log=log)
    except ProteoQCError as err:
        typer.echo(str(err), err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
