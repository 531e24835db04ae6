import polars as pl

from proteoqc.export.plot_utils import plot_table_page
from proteoqc.metrics.base import MetricUnit
from proteoqc.utils.semantics import TABLE_PARAMETERS


class ParameterTable(MetricUnit):
    """Search engine parameters as a table page."""

    metric_id = "par"
    heatmap_name = "Parameters"
    title = "PAR: Search engine parameters"
    TABLE = TABLE_PARAMETERS
    INPUTS = ("df_par",)
    REQUIRED_COLUMNS = {"df_par": ("parameter", "value")}

    def _compute(self, df_par: pl.DataFrame) -> None:
        df = df_par.select("parameter", "value").with_columns(pl.col("value").fill_null(""))

        # one fasta path per line in the search engine output; shown separately
        is_fasta = pl.col("parameter").str.to_lowercase().str.contains("fasta file")
        fasta = df.filter(is_fasta)["value"].to_list()
        fasta_files = [f for v in fasta for f in v.split(";") if f]

        self.out_data["n_parameters"] = df.height
        self.out_data["fasta_files"] = fasta_files
        self.plots.append(plot_table_page(df.filter(~is_fasta).to_pandas(), self.title, max_rows=45))
        if fasta_files:
            self.plots.append(plot_table_page(
                pl.DataFrame({"fasta file": fasta_files}).to_pandas(), f"{self.title} (fasta files)"
            ))
