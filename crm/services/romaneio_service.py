"""Romaneio (delivery manifest) document model and PDF rendering."""
from dataclasses import asdict, dataclass, field
from io import BytesIO
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from crm.models import DeliveryType
from crm.services.sale_lifecycle import DELIVERY_SHIFT_LABELS, get_status_label
from crm.utils.formatters import date_br, money_br

BLANK_DATE = '___/___/______'
BLANK_LINE = '_________________'

ROMANEIO_DELIVERY_TYPE_LABELS = {
    DeliveryType.PICKUP.value: 'RETIRADA NO BALCÃO',
    DeliveryType.MOTOBOY.value: 'TELE-ENTREGA (MOTOBOY)',
    DeliveryType.CARRIER.value: 'TRANSPORTADORA',
}

DELIVERY_CHECKLIST = (
    'Sem receita',
    'Sem notificação',
    'Sem dinheiro',
    'Endereço insuficiente',
    'Fora do horário',
    'Ausente',
    'Recusou',
    'Outro',
)

SIGNATURE_BLOCKS = ('Conferência', 'Destinatário', 'Entregador')

NO_ADDRESS = 'Endereço não cadastrado'


@dataclass
class RomaneioItem:
    code: str
    description: str
    quantity: int
    unit_price: str
    total: str


@dataclass
class RomaneioDocument:
    """Everything printed on a romaneio, already formatted."""
    sale_id: int
    romaneio_number: int
    seller_name: str
    typist_name: str
    issued_at: str
    status_label: str
    delivery_user_name: str
    delivery_date: str
    delivery_shift: str
    client_name: str
    client_phone: str
    client_email: str
    address_lines: List[str]
    has_address: bool
    sale_qr_payload: str
    map_qr_payload: Optional[str]
    delivery_type_label: str
    delivery_destination: str
    items: List[RomaneioItem] = field(default_factory=list)
    requires_prescription: str = 'NÃO'
    is_paid: str = 'NÃO'
    payment_method: str = ''
    subtotal: str = ''
    discount: str = ''
    shipping: str = ''
    total: str = ''
    checklist: List[str] = field(default_factory=lambda: list(DELIVERY_CHECKLIST))
    signatures: List[str] = field(default_factory=lambda: list(SIGNATURE_BLOCKS))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_romaneio_delivery_type_label(delivery_type: Optional[str]) -> str:
    if not delivery_type:
        return ROMANEIO_DELIVERY_TYPE_LABELS[DeliveryType.PICKUP.value]
    return ROMANEIO_DELIVERY_TYPE_LABELS.get(delivery_type, 'TELE-ENTREGA')


def _address_lines(lead) -> List[str]:
    if lead is None or not lead.street:
        return []
    first = f"{lead.street}, {lead.street_number or 's/n'}"
    if lead.complement:
        first += f" - {lead.complement}"
    return [
        first,
        f"BAIRRO: {lead.neighborhood or ''}",
        f"CEP: {lead.cep or ''} - {lead.city or ''}/{lead.state or ''} - Brasil",
    ]


def _map_link(lead) -> Optional[str]:
    if lead is None:
        return None
    if lead.google_maps_link:
        return lead.google_maps_link
    if not lead.street:
        return None
    query = ', '.join(p for p in (
        f"{lead.street} {lead.street_number or ''}".strip(),
        lead.neighborhood, lead.city, lead.state, lead.cep,
    ) if p)
    return f"https://www.google.com/maps/search/?api=1&query={quote_plus(query)}"


def build_romaneio(sale, base_url: str, seller_name: Optional[str] = None,
                   typist_name: Optional[str] = None,
                   delivery_user_name: Optional[str] = None) -> RomaneioDocument:
    """
    Project a sale (with lead, items and references loaded) into a document.

    Missing data becomes blank lines; nothing is validated here.
    """
    lead = sale.lead
    address = _address_lines(lead)

    if sale.delivery_type == DeliveryType.MOTOBOY.value and sale.delivery_region is not None:
        destination = sale.delivery_region.name
    elif sale.delivery_type == DeliveryType.CARRIER.value and sale.shipping_carrier is not None:
        destination = sale.shipping_carrier.name
    else:
        destination = ''

    payment = ''
    if sale.payment_method is not None:
        payment = sale.payment_method.name
        if (sale.payment_installments or 1) > 1:
            payment += f" ({sale.payment_installments}x)"

    items = [
        RomaneioItem(
            code=str(item.product_id).zfill(6),
            description=item.product_name,
            quantity=item.quantity,
            unit_price=money_br(item.unit_price_cents),
            total=money_br(item.total_cents),
        )
        for item in sale.items
    ]

    return RomaneioDocument(
        sale_id=sale.id,
        romaneio_number=sale.romaneio_number,
        seller_name=seller_name or typist_name or '',
        typist_name=typist_name or '',
        issued_at=sale.created_at.strftime('%d/%m/%Y - %H:%M:%S') if sale.created_at else '',
        status_label=get_status_label(sale.status).upper(),
        delivery_user_name=delivery_user_name or '',
        delivery_date=date_br(sale.scheduled_delivery_date, BLANK_DATE),
        delivery_shift=DELIVERY_SHIFT_LABELS.get(sale.scheduled_delivery_shift, BLANK_LINE),
        client_name=lead.name if lead else '',
        client_phone=lead.whatsapp if lead else '',
        client_email=(lead.email or '') if lead else '',
        address_lines=address or [NO_ADDRESS],
        has_address=bool(address),
        sale_qr_payload=f"{base_url.rstrip('/')}/vendas/{sale.id}",
        map_qr_payload=_map_link(lead),
        delivery_type_label=get_romaneio_delivery_type_label(sale.delivery_type),
        delivery_destination=destination,
        items=items,
        is_paid='SIM' if sale.payment_confirmed_at else 'NÃO',
        payment_method=payment,
        subtotal=money_br(sale.subtotal_cents),
        discount=money_br(sale.discount_cents),
        shipping=money_br(sale.shipping_cost_cents),
        total=money_br(sale.total_cents),
    )


def _qr_drawing(payload: str, size: float) -> Drawing:
    widget = QrCodeWidget(payload)
    x1, y1, x2, y2 = widget.getBounds()
    drawing = Drawing(size, size, transform=[size / (x2 - x1), 0, 0, size / (y2 - y1), 0, 0])
    drawing.add(widget)
    return drawing


def render_romaneio_pdf(document: RomaneioDocument, business_name: str = '') -> BytesIO:
    """Render a romaneio document to an A4 PDF."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=10*mm,
        leftMargin=10*mm,
        topMargin=10*mm,
        bottomMargin=10*mm,
        title=f"Romaneio {document.romaneio_number}",
    )

    elements = []
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'RomaneioTitle', parent=styles['Heading1'], fontSize=18, spaceAfter=4, fontName='Helvetica-Bold'
    )
    section_style = ParagraphStyle(
        'RomaneioSection', parent=styles['Heading3'], fontSize=11, spaceBefore=6, spaceAfter=2
    )
    normal = ParagraphStyle('RomaneioText', parent=styles['Normal'], fontSize=9, leading=12)
    small_center = ParagraphStyle('RomaneioSmall', parent=normal, fontSize=7, alignment=TA_CENTER)
    frame = ('BOX', (0, 0), (-1, -1), 0.75, colors.black)

    # 1. Header
    header_left = [
        Paragraph(f"ROMANEIO: #{document.romaneio_number}", title_style),
        Paragraph(f"<b>VENDEDOR:</b> {document.seller_name}", normal),
        Paragraph(f"<b>DIGITADOR:</b> {document.typist_name}", normal),
        Paragraph(f"<b>DATA DE EMISSÃO:</b> {document.issued_at}", normal),
        Paragraph(f"<b>Status:</b> {document.status_label}", normal),
    ]
    if business_name:
        header_left.insert(0, Paragraph(f"<b>{business_name}</b>", normal))
    header_right = []
    if document.delivery_user_name:
        header_right.append(Paragraph(f"<b>ENTREGADOR:</b> {document.delivery_user_name}", normal))
    header_right.append(Paragraph(f"<b>DATA DE ENTREGA:</b> {document.delivery_date}", normal))
    header_right.append(Paragraph(f"<b>TURNO:</b> {document.delivery_shift}", normal))

    header = Table([[header_left, header_right]], colWidths=[110*mm, 80*mm])
    header.setStyle(TableStyle([frame, ('VALIGN', (0, 0), (-1, -1), 'TOP')]))
    elements.append(header)

    # 2. Client and address
    client = [Paragraph('# CLIENTE', section_style), Paragraph(f"<b>{document.client_name}</b>", normal)]
    contact = f"<b>FONE/CEL:</b> {document.client_phone}"
    if document.client_email:
        contact += f" - <b>EMAIL:</b> {document.client_email}"
    client.append(Paragraph(contact, normal))
    client.append(Paragraph('# ENDEREÇO', section_style))
    client.extend(Paragraph(line, normal) for line in document.address_lines)

    qr_cells = [Paragraph('APONTE SEU CELULAR PARA ESTE CÓDIGO:', small_center),
                _qr_drawing(document.sale_qr_payload, 28*mm)]
    if document.map_qr_payload:
        qr_cells.extend([Paragraph('MAPA', small_center), _qr_drawing(document.map_qr_payload, 28*mm)])

    reference = [Paragraph('# REFERÊNCIA PARA ENTREGA', section_style), Paragraph(BLANK_LINE * 2, normal)]
    client_table = Table([[client + reference, qr_cells]], colWidths=[150*mm, 40*mm])
    client_table.setStyle(TableStyle([
        frame, ('VALIGN', (0, 0), (-1, -1), 'TOP'), ('ALIGN', (1, 0), (1, 0), 'CENTER'),
    ]))
    elements.append(Spacer(1, 3*mm))
    elements.append(client_table)

    # 3. Delivery type
    delivery = [Paragraph('# TIPO DE ENTREGA', section_style),
                Paragraph(f"<b>{document.delivery_type_label}</b>", normal)]
    if document.delivery_destination:
        delivery.append(Paragraph(document.delivery_destination, normal))
    delivery_table = Table([[delivery]], colWidths=[190*mm])
    delivery_table.setStyle(TableStyle([frame]))
    elements.append(Spacer(1, 3*mm))
    elements.append(delivery_table)

    # 4. Items
    table_data = [['PRODUTO', 'DESCRIÇÃO', 'QUANTIDADE', 'VALOR UNIT.', 'VALOR TOTAL']]
    for item in document.items:
        table_data.append([item.code, Paragraph(item.description, normal), str(item.quantity),
                           item.unit_price, item.total])
    items_table = Table(table_data, colWidths=[22*mm, 88*mm, 24*mm, 28*mm, 28*mm], repeatRows=1)
    items_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#E5E7EB')),
        ('ALIGN', (2, 1), (2, -1), 'CENTER'),
        ('ALIGN', (3, 1), (4, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#9CA3AF')),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    elements.append(Spacer(1, 3*mm))
    elements.append(items_table)

    # 5. Payment summary
    payment_rows = [
        [Paragraph(f"<b>EXIGE RECEITA:</b> {document.requires_prescription}", normal),
         Paragraph(f"<b>VENDA ESTA PAGA, É SÓ ENTREGAR?:</b> {document.is_paid}", normal)],
        [Paragraph(f"<b>FORMA DE PAGAMENTO:</b> {document.payment_method or BLANK_LINE}", normal),
         Paragraph(f"<b>TOTAL DO ROMANEIO: {document.total}</b>", normal)],
    ]
    payment_table = Table(payment_rows, colWidths=[95*mm, 95*mm])
    payment_table.setStyle(TableStyle([frame, ('VALIGN', (0, 0), (-1, -1), 'MIDDLE')]))
    elements.append(Spacer(1, 3*mm))
    elements.append(payment_table)

    # 6. Delivery outcome checklist
    boxes = [f"[  ] {label}" for label in document.checklist]
    boxes[-1] += f": {BLANK_LINE * 2}"
    options = boxes[:-1]
    rows = [options[i:i + 4] for i in range(0, len(options), 4)]
    rows = [row + [''] * (4 - len(row)) for row in rows]
    rows.append([boxes[-1], '', '', ''])
    checklist_table = Table(rows, colWidths=[47.5*mm] * 4)
    checklist_table.setStyle(TableStyle([
        frame, ('FONTSIZE', (0, 0), (-1, -1), 9), ('SPAN', (0, len(rows) - 1), (-1, len(rows) - 1)),
    ]))
    elements.append(Spacer(1, 3*mm))
    elements.append(checklist_table)

    # 7. Signatures
    signature_cells = [[Paragraph(f"{label}:", normal) for label in document.signatures],
                       ['_' * 30 for _ in document.signatures]]
    signature_table = Table(signature_cells, colWidths=[190*mm / len(document.signatures)] * len(document.signatures),
                            rowHeights=[6*mm, 14*mm])
    signature_table.setStyle(TableStyle([('VALIGN', (0, 1), (-1, 1), 'BOTTOM'), ('ALIGN', (0, 1), (-1, 1), 'CENTER')]))
    elements.append(Spacer(1, 6*mm))
    elements.append(signature_table)

    doc.build(elements)
    buffer.seek(0)
    return buffer
