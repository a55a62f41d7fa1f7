"""
PDF rendering for compliance reports (reportlab platypus).

All tenant-supplied text is XML-escaped before it reaches a Paragraph,
since platypus parses a small markup language. Free-plan reports omit
task steps and sector recommendations.
"""

from __future__ import annotations

import io
from pathlib import Path
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import (
    Flowable,
    ListFlowable,
    ListItem,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from dpofast.services.questionnaire.scoring import score_band
from dpofast.services.reports.analysis import ReportSnapshot, SectorAnalysis

_log = structlog.get_logger(__name__)

_BAND_COLORS = {
    "high": colors.HexColor("#1e8e3e"),
    "medium": colors.HexColor("#f29900"),
    "low": colors.HexColor("#d93025"),
}
_BAND_LABELS = {
    "high": "Alta conformidade",
    "medium": "Conformidade média",
    "low": "Baixa conformidade",
}
_STATUS_LABELS = {
    "pending": "Pendente",
    "in_progress": "Em andamento",
    "in_review": "Em revisão",
    "approved": "Aprovada",
    "rejected": "Rejeitada",
    "completed": "Concluída",
}
_PRIORITY_LABELS = {"high": "Alta", "medium": "Média", "low": "Baixa"}

_TABLE_STYLE = TableStyle(
    [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1a3c6e")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#c0c0c0")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f3f6fa")]),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]
)


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": base["Title"],
        "h2": base["Heading2"],
        "h3": base["Heading3"],
        "body": base["BodyText"],
        "small": ParagraphStyle("small", parent=base["BodyText"], fontSize=8, leading=10),
        "score": ParagraphStyle("score", parent=base["Heading1"], fontSize=28, leading=34),
    }


def _p(text: str, style: ParagraphStyle) -> Paragraph:
    return Paragraph(escape(text), style)


def _table(rows: list[list[object]], widths: list[float]) -> Table:
    table = Table(rows, colWidths=widths, repeatRows=1)
    table.setStyle(_TABLE_STYLE)
    return table


def _header(
    snapshot: ReportSnapshot, title: str, s: dict[str, ParagraphStyle]
) -> list[Flowable]:
    band = score_band(snapshot.overall_score)
    score_style = ParagraphStyle("band", parent=s["score"], textColor=_BAND_COLORS[band])
    return [
        _p(title, s["title"]),
        _p(f"Empresa: {snapshot.company_name}", s["body"]),
        _p(f"Gerado em: {snapshot.generated_at:%d/%m/%Y %H:%M} UTC", s["body"]),
        _p(f"Plano: {snapshot.plan}", s["body"]),
        Spacer(1, 0.5 * cm),
        _p("Pontuação geral de conformidade", s["h2"]),
        _p(f"{snapshot.overall_score}%", score_style),
        _p(_BAND_LABELS[band], s["body"]),
        Spacer(1, 0.3 * cm),
        _table(
            [
                ["Sim", "Parcial", "Não", "Respostas consideradas"],
                [
                    snapshot.breakdown.yes,
                    snapshot.breakdown.partial,
                    snapshot.breakdown.no,
                    snapshot.breakdown.counted,
                ],
            ],
            [3.5 * cm, 3.5 * cm, 3.5 * cm, 5.5 * cm],
        ),
    ]


def _sector_table(
    sectors: list[SectorAnalysis], s: dict[str, ParagraphStyle]
) -> list[Flowable]:
    rows: list[list[object]] = [["Setor", "Pontuação", "Respondidas", "Progresso", "Status"]]
    for sector in sectors:
        rows.append(
            [
                _p(sector.name, s["small"]),
                f"{sector.score}%",
                f"{sector.answered}/{sector.total}",
                f"{sector.progress}%",
                "Completo" if sector.is_complete else "Em andamento",
            ]
        )
    return [
        _p("Análise por setor", s["h2"]),
        _table(rows, [5.5 * cm, 2.5 * cm, 2.8 * cm, 2.5 * cm, 3 * cm]),
    ]


def _sector_details(
    sectors: list[SectorAnalysis], s: dict[str, ParagraphStyle], with_recommendations: bool
) -> list[Flowable]:
    story: list[Flowable] = []
    for sector in sectors:
        if not sector.issues and not (with_recommendations and sector.recommendations):
            continue
        story.append(_p(f"{sector.name} ({sector.score}%)", s["h3"]))
        if sector.issues:
            story.append(
                ListFlowable(
                    [ListItem(_p(issue, s["small"])) for issue in sector.issues],
                    bulletType="bullet",
                )
            )
        if with_recommendations and sector.recommendations:
            story.append(_p("Recomendações", s["body"]))
            story.append(
                ListFlowable(
                    [ListItem(_p(rec, s["small"])) for rec in sector.recommendations],
                    bulletType="bullet",
                )
            )
    if story:
        story.insert(0, _p("Pontos de atenção", s["h2"]))
    return story


def _task_section(
    snapshot: ReportSnapshot, s: dict[str, ParagraphStyle], with_steps: bool
) -> list[Flowable]:
    metrics = snapshot.task_metrics
    story: list[Flowable] = [
        _p("Tarefas de adequação", s["h2"]),
        _p(
            f"Total: {metrics.total} | Taxa de conclusão: {metrics.completion_rate}% | "
            f"Alta prioridade pendentes: {metrics.high_priority_pending}",
            s["body"],
        ),
    ]
    if metrics.by_status:
        rows: list[list[object]] = [["Status", "Quantidade"]]
        rows += [[_STATUS_LABELS.get(k, k), v] for k, v in sorted(metrics.by_status.items())]
        story.append(_table(rows, [8 * cm, 4 * cm]))
    if metrics.by_category:
        story.append(Spacer(1, 0.3 * cm))
        rows = [["Categoria", "Quantidade"]]
        rows += [[k, v] for k, v in sorted(metrics.by_category.items())]
        story.append(_table(rows, [8 * cm, 4 * cm]))

    if snapshot.priority_tasks:
        story.append(_p("Tarefas prioritárias", s["h3"]))
        rows = [["Tarefa", "Prioridade", "Prazo"]]
        for task in snapshot.priority_tasks:
            cell: list[Flowable] = [_p(task.title, s["small"])]
            if with_steps and task.steps:
                cell.append(
                    ListFlowable(
                        [ListItem(_p(step, s["small"])) for step in task.steps],
                        bulletType="1",
                    )
                )
            rows.append(
                [
                    cell,
                    _PRIORITY_LABELS.get(task.priority, task.priority),
                    f"{task.due_date:%d/%m/%Y}" if task.due_date else "-",
                ]
            )
        story.append(_table(rows, [11 * cm, 2.5 * cm, 2.8 * cm]))
    return story


def render_report(snapshot: ReportSnapshot, title: str) -> bytes:
    """Render a report snapshot to PDF bytes."""
    s = _styles()
    detailed = snapshot.limits.task_details

    story: list[Flowable] = _header(snapshot, title, s)
    story.append(Spacer(1, 0.5 * cm))
    story += _sector_table(snapshot.sectors, s)
    story.append(Spacer(1, 0.5 * cm))
    story += _sector_details(snapshot.sectors, s, with_recommendations=detailed)
    story.append(Spacer(1, 0.5 * cm))
    story += _task_section(snapshot, s, with_steps=detailed)
    if not detailed:
        story.append(Spacer(1, 0.5 * cm))
        story.append(
            _p(
                "Faça upgrade do seu plano para ver os passos de cada tarefa "
                "e as recomendações por setor.",
                s["small"],
            )
        )

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        title=title,
        author="DPO Fast",
        leftMargin=2 * cm,
        rightMargin=2 * cm,
        topMargin=2 * cm,
        bottomMargin=2 * cm,
    )
    doc.build(story)
    data = buffer.getvalue()
    _log.debug("report_pdf_rendered", sectors=len(snapshot.sectors), size_bytes=len(data))
    return data


def write_report(snapshot: ReportSnapshot, title: str, path: Path) -> int:
    data = render_report(snapshot, title)
    path.write_bytes(data)
    return len(data)
