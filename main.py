from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import HTMLResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from typing import List
import csv
import io
import os
from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont, TTFError

import config
from logging_config import configure_logging, get_logger
from models import (Expense, ExpenseStats, LedgerEntry, NewExpense, Participant,
                    PaymentUpdate, SplitRequest)
from reporting import LiveLedger, SETTLED_MESSAGE
from settlement import resolve_payer
from storage import storage
from utils import format_currency, format_currency_input, split_equally

configure_logging(level=config.LOG_LEVEL)
logger = get_logger("web")

app = FastAPI(title=config.APP_TITLE)
templates = Jinja2Templates(
    directory=os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates"))

templates.env.filters['format_currency'] = format_currency
templates.env.filters['format_currency_input'] = format_currency_input

ledger = LiveLedger()
ledger.attach(storage)

if config.SEED_DEMO_DATA:
    storage.seed_demo_data()


def get_expense_or_404(expense_id: str) -> Expense:
    expense = storage.get_expense(expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


def payer_name(expense: Expense) -> str:
    return resolve_payer(expense.payer, ledger.report.participants) or "Unknown"


@app.get("/", response_class=HTMLResponse)
async def dashboard(request: Request):
    report = ledger.report
    settlement = report.settlement()

    return templates.TemplateResponse(request, "dashboard.html", {
        "title": config.APP_TITLE,
        "expenses": report.expenses,
        "payer_name": payer_name,
        "settlement": settlement,
        "settlement_lines": report.settlement_lines(settlement),
        "stats": report.stats()
    })


@app.get("/api/participants", response_model=List[Participant])
async def list_participants():
    return storage.list_participants()


@app.post("/api/participants", response_model=Participant, status_code=201)
async def add_participant(participant: Participant):
    try:
        return storage.add_participant(participant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/api/participants/{participant_id}", response_model=Participant)
async def update_participant(participant_id: str, participant: Participant):
    current = storage.get_participant(participant_id)
    if not current:
        raise HTTPException(status_code=404, detail="Participant not found")

    participant = participant.model_copy(update={"id": participant_id})
    if participant.name != current.name and storage.participant_in_use(participant_id):
        raise HTTPException(status_code=409,
                            detail="Participant has expenses and cannot be renamed")

    try:
        return storage.update_participant(participant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete("/api/participants/{participant_id}", status_code=204)
async def delete_participant(participant_id: str):
    try:
        deleted = storage.delete_participant(participant_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Participant not found")


@app.get("/api/expenses", response_model=List[Expense])
async def list_expenses():
    return storage.list_expenses()


@app.post("/api/expenses", response_model=Expense, status_code=201)
async def add_expense(payload: dict):
    try:
        new_expense = NewExpense.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400,
                            detail=[err["msg"] for err in e.errors()])

    roster = storage.list_participants()
    if not any(new_expense.payer in (p.id, p.name) for p in roster):
        raise HTTPException(status_code=400,
                            detail="Payer must be a known participant")

    return storage.add_expense(new_expense.to_expense())


@app.get("/api/expenses/{expense_id}", response_model=Expense)
async def get_expense(expense_id: str):
    return get_expense_or_404(expense_id)


@app.delete("/api/expenses/{expense_id}", status_code=204)
async def delete_expense(expense_id: str):
    expense = get_expense_or_404(expense_id)
    storage.delete_expense(expense.id)


@app.post("/api/expenses/{expense_id}/payment-status", response_model=Expense)
async def update_payment_status(expense_id: str, update: PaymentUpdate):
    get_expense_or_404(expense_id)
    return storage.update_payment_status(expense_id, update)


@app.get("/api/balances", response_model=List[LedgerEntry])
async def balances():
    return list(ledger.report.balance_summary().values())


@app.get("/api/settlements")
async def settlements():
    report = ledger.report
    settlement = report.settlement()

    return {
        "settled": settlement.settled,
        "message": SETTLED_MESSAGE if settlement.settled else None,
        "transfers": [t.model_dump(mode="json") for t in settlement.transfers],
        "lines": report.settlement_lines(settlement),
        "warnings": settlement.warnings
    }


@app.get("/api/stats", response_model=ExpenseStats)
async def stats():
    return ledger.report.stats()


@app.post("/api/split-equally")
async def split_equally_route(split: SplitRequest):
    try:
        shares = split_equally(split.total_amount, len(split.members))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "members": [{"name": name, "amount": str(amount)}
                    for name, amount in zip(split.members, shares)]
    }


@app.get("/export/csv")
async def export_csv():
    report = ledger.report
    settlement = report.settlement()

    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow([f"{config.APP_TITLE} - Settlement export"])
    writer.writerow([])

    writer.writerow(["PARTICIPANTS"])
    writer.writerow(["Name"])
    for participant in report.participants:
        writer.writerow([participant.name])
    writer.writerow([])

    writer.writerow(["EXPENSES"])
    writer.writerow(["Date", "Description", "Category", "Amount", "Paid by",
                     "Members", "Status"])
    for expense in report.expenses:
        members = ", ".join(
            f"{m.name} ({format_currency(m.amount or 0)})" for m in expense.members)
        writer.writerow([
            expense.created_at.strftime('%Y-%m-%d'), expense.description,
            expense.category, format_currency(expense.total_amount),
            payer_name(expense), members, expense.payment_status.value
        ])
    writer.writerow([])

    writer.writerow(["BALANCES"])
    writer.writerow(["Participant", "Total paid", "Total share", "Balance"])
    for entry in settlement.balances:
        writer.writerow([
            entry.participant_name,
            format_currency(entry.total_paid),
            format_currency(entry.total_owed),
            format_currency(entry.balance)
        ])
    writer.writerow([])

    writer.writerow(["SETTLEMENTS"])
    writer.writerow(["From", "To", "Amount"])
    for transfer in settlement.transfers:
        writer.writerow([
            transfer.from_participant, transfer.to_participant,
            format_currency(transfer.amount)
        ])
    if settlement.settled:
        writer.writerow([SETTLED_MESSAGE])

    output.seek(0)

    return StreamingResponse(
        io.BytesIO(output.getvalue().encode('utf-8-sig')),
        media_type="text/csv",
        headers={
            "Content-Disposition": "attachment; filename=settlement.csv"
        })


def register_fonts():
    try:
        pdfmetrics.registerFont(
            TTFont('DejaVuSans',
                   '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf'))
        pdfmetrics.registerFont(
            TTFont('DejaVuSans-Bold',
                   '/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf'))
        return 'DejaVuSans', 'DejaVuSans-Bold'
    except (OSError, TTFError):
        logger.info("DejaVu fonts unavailable, using Helvetica")
        return 'Helvetica', 'Helvetica-Bold'


def table_style(font_name, font_name_bold, amount_columns=()):
    commands = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#e5e7eb')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.HexColor('#1f2937')),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (-1, 0), font_name_bold),
        ('FONTNAME', (0, 1), (-1, -1), font_name),
        ('FONTSIZE', (0, 0), (-1, 0), 10),
        ('FONTSIZE', (0, 1), (-1, -1), 9),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('TOPPADDING', (0, 0), (-1, 0), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#d1d5db')),
    ]
    for column in amount_columns:
        commands.append(('ALIGN', (column, 0), (column, -1), 'RIGHT'))
    return TableStyle(commands)


@app.get("/export/pdf")
async def export_pdf():
    report = ledger.report
    settlement = report.settlement()

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    elements = []

    font_name, font_name_bold = register_fonts()

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'CustomTitle',
        parent=styles['Heading1'],
        fontSize=18,
        fontName=font_name_bold,
        textColor=colors.HexColor('#1f2937'),
        spaceAfter=12,
    )
    heading_style = ParagraphStyle(
        'CustomHeading',
        parent=styles['Heading2'],
        fontSize=14,
        fontName=font_name_bold,
        textColor=colors.HexColor('#374151'),
        spaceAfter=10,
        spaceBefore=14,
    )

    elements.append(Paragraph(config.APP_TITLE, title_style))
    elements.append(Spacer(1, 0.5 * cm))

    elements.append(Paragraph("Expenses", heading_style))
    expense_data = [["Date", "Description", "Amount", "Paid by", "Status"]]
    for expense in report.expenses:
        expense_data.append([
            expense.created_at.strftime('%Y-%m-%d'), expense.description,
            format_currency(expense.total_amount), payer_name(expense),
            expense.payment_status.value
        ])

    expense_table = Table(
        expense_data, colWidths=[2.5 * cm, 5 * cm, 2.5 * cm, 3 * cm, 2.5 * cm])
    expense_table.setStyle(table_style(font_name, font_name_bold, amount_columns=(2,)))
    elements.append(expense_table)
    elements.append(Spacer(1, 0.5 * cm))

    elements.append(Paragraph("Balances", heading_style))
    balance_data = [["Participant", "Total paid", "Total share", "Balance"]]
    for entry in settlement.balances:
        balance_data.append([
            entry.participant_name,
            format_currency(entry.total_paid),
            format_currency(entry.total_owed),
            format_currency(entry.balance)
        ])

    balance_table = Table(balance_data, colWidths=[6 * cm, 3 * cm, 3 * cm, 3 * cm])
    balance_table.setStyle(table_style(font_name, font_name_bold, amount_columns=(1, 2, 3)))
    elements.append(balance_table)
    elements.append(Spacer(1, 0.5 * cm))

    elements.append(Paragraph("Settlements", heading_style))
    payment_data = [["From", "To", "Amount"]]
    for transfer in settlement.transfers:
        payment_data.append([
            transfer.from_participant, transfer.to_participant,
            format_currency(transfer.amount)
        ])

    if len(payment_data) == 1:
        payment_data.append([SETTLED_MESSAGE, "", ""])

    payment_table = Table(payment_data, colWidths=[5 * cm, 5 * cm, 5 * cm])
    payment_table.setStyle(table_style(font_name, font_name_bold, amount_columns=(2,)))
    elements.append(payment_table)

    doc.build(elements)
    buffer.seek(0)

    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={
            "Content-Disposition": "attachment; filename=settlement.pdf"
        })


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
