"""
HTML Report and Table Export

This module renders the computed summaries into one self-contained HTML
document and writes the same tables as TSV files.

The report contains:
- Quick stats (samples, locations, species, reads)
- Data quality notices for tolerated problems and degraded sections
- Sample map and sortable sample table
- Phylum read and species charts
- Two NMDS ordination plots
- Sortable, filterable species and introduced species tables
- DNA extension summary and run parameters

Abundance cells are formatted as percentages. A null abundance (taxon not
observed in that sample type) renders as an empty, shaded cell; an
observed abundance of zero renders as a muted "0.000%". Figures are
embedded as base64 data URIs so the report can be published as a single
file.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING
from pathlib import Path
import base64
import logging

import pandas as pd
from jinja2 import Environment

from . import __version__
from .config import EVENT_TYPES, ReportConfig
from .utils import format_number, format_percentage, get_timestamp

if TYPE_CHECKING:
    from .core import ReportResult

logger = logging.getLogger(__name__)


DNA_SUMMARY_COLUMNS = ['target_gene', 'pcr_primer_name_forward', 'pcr_primer_name_reverse']

# (column, header, kind)
SAMPLE_COLUMNS = [
    ('locationID', 'Location', 'text'),
    ('eventID', 'Event', 'text'),
    ('materialSampleID', 'Sample', 'text'),
    ('eventType', 'Type', 'text'),
    ('eventDate', 'Date', 'date'),
    ('decimalLongitude', 'Longitude', 'coordinate'),
    ('decimalLatitude', 'Latitude', 'coordinate'),
    ('asvs', 'ASVs', 'count'),
    ('reads', 'Reads', 'count'),
    ('species', 'Species', 'count'),
]

SPECIES_COLUMNS = [
    ('phylum', 'Phylum', 'text'),
    ('class', 'Class', 'text'),
    ('species', 'Species', 'text'),
    ('aphiaID', 'AphiaID', 'text'),
    ('reads', 'Reads', 'count'),
] + [(event_type, event_type.capitalize(), 'abundance') for event_type in EVENT_TYPES]


HTML_REPORT_CSS = """
body { font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif;
       margin: 0; background: #f5f7fa; color: #2c3e50; line-height: 1.5; }
header { background: linear-gradient(135deg, #1f4e79, #2e86ab); color: white;
         padding: 30px 40px; }
header h1 { margin: 0 0 6px 0; font-weight: 500; }
header .meta { opacity: 0.85; font-size: 0.9em; }
.quick-stats { display: flex; flex-wrap: wrap; gap: 16px; margin-top: 20px; }
.quick-stat { background: rgba(255,255,255,0.15); border-radius: 6px; padding: 10px 18px; }
.quick-stat .value { font-size: 1.5em; font-weight: 600; display: block; }
.quick-stat .label { font-size: 0.8em; text-transform: uppercase; letter-spacing: 0.05em; }
main { max-width: 1200px; margin: 0 auto; padding: 20px 40px 60px 40px; }
.section { background: white; border-radius: 8px; padding: 20px 28px; margin: 24px 0;
           box-shadow: 0 1px 3px rgba(0,0,0,0.08); }
.section h2 { margin-top: 0; color: #1f4e79; border-bottom: 2px solid #e8eef3; padding-bottom: 8px; }
.alert { padding: 10px 14px; border-radius: 4px; margin: 10px 0; }
.alert-warning { background: #fff4e5; border-left: 4px solid #f0ad4e; }
.alert-info { background: #e8f4fd; border-left: 4px solid #2e86ab; }
.figure { text-align: center; margin: 16px 0; }
.figure img { max-width: 100%; }
.figure .caption { font-size: 0.85em; color: #666; }
.table-tools { margin: 8px 0; }
.table-tools input { padding: 6px 10px; width: 280px; border: 1px solid #ccd6dd; border-radius: 4px; }
.table-container { max-height: 600px; overflow: auto; border: 1px solid #e8eef3; }
table { border-collapse: collapse; width: 100%; font-size: 0.85em; }
th { position: sticky; top: 0; background: #1f4e79; color: white; cursor: pointer;
     padding: 6px 8px; text-align: left; white-space: nowrap; }
th.sorted-asc::after { content: " \\25B2"; }
th.sorted-desc::after { content: " \\25BC"; }
td { padding: 4px 8px; border-bottom: 1px solid #eef2f5; }
td.count, td.coordinate, td.abundance { text-align: right; font-variant-numeric: tabular-nums; }
td.abundance { width: 90px; }
td.abundance.na { background: #f4f4f4; }
td.abundance.zero { color: #aaa; }
td.species { font-style: italic; }
tr:hover td { background: #f0f6fb; }
footer { text-align: center; color: #888; font-size: 0.8em; padding: 20px; }
"""

HTML_REPORT_SCRIPT = """
document.querySelectorAll('table.sortable').forEach(function (table) {
  table.querySelectorAll('th').forEach(function (th, index) {
    th.addEventListener('click', function () {
      var numeric = ['count', 'coordinate', 'abundance'].indexOf(th.dataset.kind) >= 0;
      var asc = !th.classList.contains('sorted-asc');
      table.querySelectorAll('th').forEach(function (h) {
        h.classList.remove('sorted-asc', 'sorted-desc');
      });
      th.classList.add(asc ? 'sorted-asc' : 'sorted-desc');
      var body = table.tBodies[0];
      var rows = Array.from(body.rows);
      rows.sort(function (a, b) {
        var x = a.cells[index].dataset.sort, y = b.cells[index].dataset.sort;
        if (x === '' && y === '') return 0;
        if (x === '') return 1;
        if (y === '') return -1;
        var cmp = numeric ? parseFloat(x) - parseFloat(y) : x.localeCompare(y);
        return asc ? cmp : -cmp;
      });
      rows.forEach(function (row) { body.appendChild(row); });
    });
  });
});
document.querySelectorAll('input.table-filter').forEach(function (input) {
  input.addEventListener('input', function () {
    var needle = input.value.toLowerCase();
    var table = document.getElementById(input.dataset.table);
    Array.from(table.tBodies[0].rows).forEach(function (row) {
      row.style.display = row.textContent.toLowerCase().indexOf(needle) >= 0 ? '' : 'none';
    });
  });
});
"""

# HTML Report Template
HTML_REPORT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{{ title }}</title>
<style>{{ css | safe }}</style>
</head>
<body>
<header>
  <h1>{{ title }}</h1>
  <div class="meta">Generated {{ timestamp }} by ednareport {{ version }}</div>
  <div class="quick-stats">
  {% for stat in quick_stats %}
    <div class="quick-stat"><span class="value">{{ stat.value }}</span><span class="label">{{ stat.label }}</span></div>
  {% endfor %}
  </div>
</header>
<main>
{% for section in sections %}
{{ section | safe }}
{% endfor %}
</main>
<footer>ednareport {{ version }}</footer>
<script>{{ script | safe }}</script>
</body>
</html>
"""

SECTION_TEMPLATE = """<div class="section" id="section-{{ anchor }}">
<h2>{{ heading }}</h2>
{% for notice in notices %}<p class="alert alert-warning">{{ notice }}</p>
{% endfor %}{% for paragraph in paragraphs %}<p>{{ paragraph }}</p>
{% endfor %}{{ body | safe }}
</div>"""

FIGURE_TEMPLATE = """<div class="figure">
<img src="{{ src }}" alt="{{ caption }}">
<div class="caption">{{ caption }}</div>
</div>"""

TABLE_TEMPLATE = """{% if filterable %}<div class="table-tools">
<input type="search" class="table-filter" data-table="{{ table_id }}" placeholder="Filter rows...">
</div>{% endif %}
<div class="table-container">
<table class="sortable" id="{{ table_id }}">
<thead><tr>{% for col in columns %}<th data-kind="{{ col.kind }}">{{ col.label }}</th>{% endfor %}</tr></thead>
<tbody>
{% for row in rows %}<tr>{% for cell in row %}<td class="{{ cell.cls }}" data-sort="{{ cell.sort }}">{{ cell.text }}</td>{% endfor %}</tr>
{% endfor %}</tbody>
</table>
</div>
{% if truncated %}<p class="alert alert-info">Showing first {{ rows | length }} rows of {{ total }}; the full table is in {{ tsv_name }}.</p>{% endif %}"""

_env = Environment(autoescape=True)


class HTMLReportBuilder:
    """
    Builder class for generating the HTML report.

    Assembles sections into a formatted HTML document with embedded
    tables and figures.
    """

    def __init__(self, title: str, version: str = __version__):
        self.title = title
        self.version = version
        self.sections: List[str] = []
        self.quick_stats: List[Dict[str, str]] = []

    def add_quick_stat(self, value: str, label: str):
        """Add a quick stat to the header bar."""
        self.quick_stats.append({'value': value, 'label': label})

    def add_section(
        self,
        anchor: str,
        heading: str,
        body: str = "",
        paragraphs: Sequence[str] = (),
        notices: Sequence[str] = (),
    ):
        """Add a section to the report."""
        self.sections.append(
            _env.from_string(SECTION_TEMPLATE).render(
                anchor=anchor,
                heading=heading,
                body=body,
                paragraphs=list(paragraphs),
                notices=list(notices),
            )
        )

    def render(self) -> str:
        """Render the complete HTML document."""
        return _env.from_string(HTML_REPORT_TEMPLATE).render(
            title=self.title,
            version=self.version,
            timestamp=get_timestamp().replace('T', ' '),
            css=HTML_REPORT_CSS,
            script=HTML_REPORT_SCRIPT,
            quick_stats=self.quick_stats,
            sections=self.sections,
        )


# ============================================================================
# Cell and Table Formatting
# ============================================================================

def format_cell(value: Any, kind: str, decimals: int = 3) -> Dict[str, Any]:
    """
    Format one table cell.

    Returns a dict with the display text, CSS classes and sort key.
    Missing values sort last and display as an empty string.
    """
    missing = value is None or pd.isna(value)

    if kind == 'abundance':
        if missing:
            return {'text': '', 'cls': 'abundance na', 'sort': ''}
        value = float(value)
        cls = 'abundance zero' if value == 0 else 'abundance'
        return {'text': format_percentage(value, decimals), 'cls': cls, 'sort': value}

    if missing:
        return {'text': '', 'cls': kind, 'sort': ''}

    if kind == 'count':
        value = float(value)
        text = format_number(int(value)) if value.is_integer() else format_number(value)
        return {'text': text, 'cls': kind, 'sort': value}
    if kind == 'coordinate':
        return {'text': f"{float(value):.4f}", 'cls': kind, 'sort': float(value)}
    if kind == 'date':
        text = pd.Timestamp(value).strftime('%Y-%m-%d')
        return {'text': text, 'cls': kind, 'sort': text}
    return {'text': str(value), 'cls': kind, 'sort': str(value)}


def render_table(
    df: pd.DataFrame,
    columns: Sequence[Tuple[str, str, str]],
    table_id: str,
    max_rows: int = 5000,
    decimals: int = 3,
    filterable: bool = True,
    tsv_name: str = "",
) -> str:
    """
    Render a DataFrame as a sortable HTML table.

    Parameters
    ----------
    df : pd.DataFrame
        Table to render
    columns : Sequence[Tuple[str, str, str]]
        (column, header, kind) triples; kind is text, count, coordinate,
        date or abundance
    table_id : str
        HTML id of the table
    max_rows : int
        Maximum rows rendered (default: 5000)
    """
    if df.empty:
        return '<p class="alert alert-info">No data available</p>'

    columns = [col for col in columns if col[0] in df.columns]
    shown = df.head(max_rows)
    rows = []
    for record in shown[[col[0] for col in columns]].itertuples(index=False, name=None):
        row = []
        for value, (name, _, kind) in zip(record, columns):
            cell = format_cell(value, kind, decimals)
            if name == 'species' and kind == 'text':
                cell['cls'] += ' species'
            row.append(cell)
        rows.append(row)

    return _env.from_string(TABLE_TEMPLATE).render(
        table_id=table_id,
        columns=[{'label': label, 'kind': kind} for _, label, kind in columns],
        rows=rows,
        filterable=filterable,
        truncated=len(df) > max_rows,
        total=len(df),
        tsv_name=tsv_name,
    )


def _encode_image_to_base64(image_path: Optional[Path]) -> Optional[str]:
    """Encode an image file as a base64 data URI, or None if unavailable."""
    if image_path is None or not Path(image_path).exists():
        return None

    image_path = Path(image_path)
    mime_types = {
        '.png': 'image/png',
        '.jpg': 'image/jpeg',
        '.jpeg': 'image/jpeg',
        '.svg': 'image/svg+xml',
    }
    mime_type = mime_types.get(image_path.suffix.lower(), 'image/png')
    encoded = base64.b64encode(image_path.read_bytes()).decode('utf-8')
    return f"data:{mime_type};base64,{encoded}"


def render_figure(image_path: Optional[Path], caption: str) -> str:
    """Embed a figure, or a notice if it was not produced."""
    src = _encode_image_to_base64(image_path)
    if src is None:
        return _env.from_string(
            '<p class="alert alert-warning">Figure not available: {{ caption }}</p>'
        ).render(caption=caption)
    return _env.from_string(FIGURE_TEMPLATE).render(src=src, caption=caption)


# ============================================================================
# Table Export
# ============================================================================

def write_tables(result: "ReportResult", tables_dir: Path) -> Dict[str, Path]:
    """
    Write the computed tables as TSV files.

    Null values are written as empty strings, matching the input convention.

    Returns
    -------
    Dict[str, Path]
        Table name to written path
    """
    tables_dir = Path(tables_dir)
    tables_dir.mkdir(parents=True, exist_ok=True)

    tables = {
        'samples': result.samples,
        'phylum_stats': result.phylum_stats,
        'abundance': result.abundance,
        'species': result.species,
        'introduced_species': result.introduced,
    }
    for mode, ordination in result.ordinations.items():
        tables[f'ordination_{mode}_samples'] = ordination.samples
        tables[f'ordination_{mode}_features'] = ordination.features

    written = {}
    for name, df in tables.items():
        path = tables_dir / f"{name}.tsv"
        out = df.copy()
        for col in out.columns:
            if pd.api.types.is_datetime64_any_dtype(out[col]):
                out[col] = out[col].dt.strftime('%Y-%m-%d')
        out.to_csv(path, sep='\t', index=False, na_rep='')
        written[name] = path
        logger.debug(f"Wrote {name} table: {path}")

    logger.info(f"  ✓ Wrote {len(written)} tables to {tables_dir}")
    return written


# ============================================================================
# Section Builders
# ============================================================================

def _build_quality_section(builder: HTMLReportBuilder, result: "ReportResult") -> None:
    notices = list(result.warnings)
    paragraphs = [] if notices else ["No data quality problems were detected."]
    builder.add_section('data-quality', 'Data quality', paragraphs=paragraphs, notices=notices)


def _build_samples_section(builder: HTMLReportBuilder, result: "ReportResult", cfg: ReportConfig) -> None:
    body = render_figure(result.figures.get('sample_map'), "Sample locations by sample type")
    body += render_table(
        result.samples, SAMPLE_COLUMNS, 'table-samples',
        max_rows=cfg.max_table_rows, filterable=False, tsv_name='tables/samples.tsv',
    )
    builder.add_section(
        'samples', 'Samples', body,
        paragraphs=[
            f"{len(result.samples)} samples with coordinates. ASVs is the number of "
            f"occurrence records, species the number of distinct species-level names."
        ],
    )


def _build_phylum_section(builder: HTMLReportBuilder, result: "ReportResult") -> None:
    body = render_figure(result.figures.get('phylum_reads'), "Reads by phylum, location and sample type")
    body += render_figure(result.figures.get('phylum_species'), "Species by phylum, location and sample type")
    builder.add_section(
        'phyla', 'Phyla', body,
        paragraphs=["Control samples and records without a phylum or location are excluded."],
    )


def _build_ordination_section(builder: HTMLReportBuilder, result: "ReportResult") -> None:
    body = ""
    notices = []
    captions = {
        'reads': "NMDS of relative phylum read abundance (Bray-Curtis)",
        'presence': "NMDS of species presence (Bray-Curtis)",
    }
    for mode, caption in captions.items():
        ordination = result.ordinations.get(mode)
        if ordination is None:
            notices.append(f"{caption}: not computed")
            continue
        if ordination.message:
            notices.append(f"{caption}: {ordination.message}")
        if ordination.dropped_samples:
            notices.append(
                f"{caption}: {len(ordination.dropped_samples)} samples with no reads were left out "
                f"({', '.join(ordination.dropped_samples)})"
            )
        body += render_figure(result.figures.get(f'ordination_{mode}'), caption)
    builder.add_section('ordination', 'Ordination', body, notices=notices)


def _build_species_section(builder: HTMLReportBuilder, result: "ReportResult", cfg: ReportConfig) -> None:
    body = render_table(
        result.species, SPECIES_COLUMNS, 'table-species',
        max_rows=cfg.max_table_rows, decimals=cfg.abundance_decimals,
        tsv_name='tables/species.tsv',
    )
    builder.add_section(
        'species', 'Species', body,
        paragraphs=[
            "Abundance is the percentage of all reads of a sample type. Empty cells "
            "mean the species was not detected in that sample type."
        ],
    )


def _build_introduced_section(builder: HTMLReportBuilder, result: "ReportResult", cfg: ReportConfig) -> None:
    checklist = result.checklist
    notices = []
    if checklist is None or checklist.degraded:
        reason = checklist.reason if checklist is not None else "Checklist not loaded"
        notices.append(f"This section is incomplete. {reason}")
        body = ""
    else:
        body = render_table(
            result.introduced, SPECIES_COLUMNS, 'table-introduced',
            max_rows=cfg.max_table_rows, decimals=cfg.abundance_decimals,
            tsv_name='tables/introduced_species.tsv',
        )
    paragraphs = []
    if checklist is not None and not checklist.degraded:
        paragraphs.append(
            f"Species whose AphiaID appears in the introduced species checklist "
            f"({checklist.source}, {len(checklist.ids)} taxa)."
        )
    builder.add_section('introduced', 'Introduced species', body, paragraphs=paragraphs, notices=notices)


def _build_dna_section(builder: HTMLReportBuilder, result: "ReportResult") -> None:
    dna = result.dna
    paragraphs = [f"{len(dna)} DNA extension records with {len(dna.columns)} columns."]
    body = ""
    for column in DNA_SUMMARY_COLUMNS:
        if column in dna.columns:
            counts = (
                dna[column].fillna("(empty)").value_counts()
                .rename_axis(column).reset_index(name='records')
            )
            body += render_table(
                counts, [(column, column, 'text'), ('records', 'Records', 'count')],
                f'table-dna-{column}', filterable=False,
            )
    builder.add_section('dna', 'DNA extension', body, paragraphs=paragraphs)


def _build_parameters_section(builder: HTMLReportBuilder, result: "ReportResult") -> None:
    params = pd.DataFrame(
        [{'parameter': key, 'value': str(value)} for key, value in result.parameters.items()]
    )
    body = render_table(
        params, [('parameter', 'Parameter', 'text'), ('value', 'Value', 'text')],
        'table-parameters', filterable=False,
    )
    builder.add_section('parameters', 'Parameters', body)


def generate_html_report(
    result: "ReportResult",
    output_file: Path,
    cfg: Optional[ReportConfig] = None,
) -> Path:
    """
    Render the HTML report for a completed pipeline run.

    Parameters
    ----------
    result : ReportResult
        Computed tables, figures and warnings from core.run_pipeline()
    output_file : Path
        Destination HTML file
    cfg : ReportConfig, optional
        Title, table size and number formatting

    Returns
    -------
    Path
        Path to the written report
    """
    if cfg is None:
        cfg = ReportConfig()

    logger.info("Generating HTML report...")
    builder = HTMLReportBuilder(title=cfg.title)

    builder.add_quick_stat(format_number(len(result.samples)), 'Samples')
    builder.add_quick_stat(format_number(int(result.samples['locationID'].nunique())), 'Locations')
    builder.add_quick_stat(format_number(int(result.species['species'].nunique())), 'Species')
    builder.add_quick_stat(format_number(int(result.occurrences['organismQuantity'].sum())), 'Reads')
    if result.degraded:
        builder.add_quick_stat('Incomplete', 'Report status')

    _build_quality_section(builder, result)
    _build_samples_section(builder, result, cfg)
    _build_phylum_section(builder, result)
    _build_ordination_section(builder, result)
    _build_species_section(builder, result, cfg)
    _build_introduced_section(builder, result, cfg)
    _build_dna_section(builder, result)
    _build_parameters_section(builder, result)

    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(builder.render(), encoding='utf-8')

    logger.info(f"HTML report saved: {output_file}")
    return output_file
