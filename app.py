from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional

import pandas as pd
import streamlit as st

from component.feedback_component import (
    clear_error,
    render_confirmation,
    render_error_banner,
    request_confirmation,
    set_error,
)
from component.kpi_cards_component import inject_kpi_cards_css, render_kpi_cards
from component.page_header_component import render_page_header
from passport_engine import data_layer as dl
from passport_engine.config import configure_logging, receivables_account
from passport_engine.errors import PassportError, ValidationError
from passport_engine.export import build_clients_csv, clients_csv_filename
from passport_engine.logic import charges as rules
from passport_engine.logic.dashboard import (
    chart_window,
    churn_by_month,
    current_week_index,
    mrr_by_month,
    subscription_metrics,
    weekly_charge_series,
    weekly_client_counts,
)
from passport_engine.logic.ledger import (
    account_card,
    account_name,
    by_client,
    by_service,
    card_details,
    totals_side,
    turnover_sheet,
)
from passport_engine.logic.positions import (
    client_list_stats,
    positions_by_client,
    positions_by_service,
    split_debtors,
    summarize_position,
    unique_services,
)
from ui.formatting import (
    format_amount_input,
    format_date,
    format_money,
    format_money_int,
    format_percent,
    format_period,
)
from ui.plotly_charts import (
    PLOTLY_CONFIG_MINIMAL,
    fig_churn_rate,
    fig_mrr_by_month,
    fig_new_vs_churned,
    fig_weekly_charges,
    fig_weekly_clients,
)
from ui.styles import inject_global_passport_styles, section_title

st.set_page_config(page_title="Pass-Port – учёт подписок", layout="wide")

configure_logging()
logger = logging.getLogger(__name__)

PAGE_DASHBOARD = "Главная"
PAGE_CLIENTS = "Клиенты"
PAGE_CLIENT_CARD = "Карточка клиента"
PAGE_EMPLOYEES = "Сотрудники"
PAGE_SERVICES = "Услуги"
PAGE_REPORTS = "Отчёты"
PAGE_ABOUT = "О сервисе"

PAGE_NAMES = [
    PAGE_DASHBOARD,
    PAGE_CLIENTS,
    PAGE_CLIENT_CARD,
    PAGE_EMPLOYEES,
    PAGE_SERVICES,
    PAGE_REPORTS,
    PAGE_ABOUT,
]

NAV_KEY = "sb_page_nav"
SELECTED_CLIENT_KEY = "selected_client_id"


# --------------------------------------------------
# Shared helpers
# --------------------------------------------------

def _open_client_card(client_id: int) -> None:
    # runs as a button callback, before the sidebar radio is drawn again
    st.session_state[SELECTED_CLIENT_KEY] = client_id
    st.session_state[NAV_KEY] = PAGE_CLIENT_CARD


def _fail(screen: str, exc: PassportError) -> None:
    logger.warning("%s: %s", screen, exc.message)
    set_error(screen, exc.message)


def _service_by_name(services, name: str):
    return next((s for s in services if s.name == name), None)


def _employee_label(employees, employee_id: Optional[int]) -> str:
    if employee_id is None:
        return "—"
    emp = next((e for e in employees if e.id == employee_id), None)
    return emp.name if emp else f"#{employee_id}"


def _period_inputs(key: str):
    col_from, col_to = st.columns(2)
    period_from = col_from.date_input("С", value=None, format="DD.MM.YYYY", key=f"{key}_from")
    period_to = col_to.date_input("По", value=None, format="DD.MM.YYYY", key=f"{key}_to")
    return period_from, period_to


def _week_window(n_weeks: int, current_index: int, key: str):
    start, end = chart_window(n_weeks, current_index)
    size = end - start
    max_start = max(0, n_weeks - size)
    if max_start > 0:
        start = st.slider("Сдвиг окна (недели)", 0, max_start, start, key=key)
    return start, start + size


def _charge_label(c) -> str:
    return f"{c.service_name} · {format_period(c.start_date, c.end_date)} · {format_money(c.amount)}"


# --------------------------------------------------
# Главная
# --------------------------------------------------

SCREEN_DASHBOARD = "dashboard"


def page_dashboard():
    render_page_header({
        "title": "Главная",
        "subtitle": "Подписки, выручка и отток клиентов",
    })
    render_error_banner(SCREEN_DASHBOARD)

    try:
        all_charges = dl.fetch_charges()
        all_payments = dl.fetch_payments()
    except PassportError as e:
        st.error(e.message)
        return

    today = date.today()
    metrics = subscription_metrics(all_charges, all_payments, today=today)
    statuses = metrics.statuses()

    inject_kpi_cards_css()
    section_title("Метрики подписок")
    render_kpi_cards([
        {"title": "MRR", "value": format_money_int(metrics.mrr), "desc": "Активные подписки за месяц", "status": statuses["mrr"]},
        {"title": "Рост MRR", "value": format_percent(metrics.mrr_growth_pct), "desc": "К прошлому месяцу", "status": statuses["mrr_growth"]},
        {"title": "Churn rate", "value": format_percent(metrics.churn_rate), "desc": "Доля клиентов, не продливших подписку", "status": statuses["churn"]},
        {"title": "Retention", "value": format_percent(metrics.retention_rate), "desc": "Доля продливших", "status": statuses["retention"]},
        {"title": "ARPU", "value": format_money_int(metrics.arpu), "desc": "Средний доход на клиента в месяц", "status": statuses["arpu"]},
        {"title": "LTV", "value": format_money_int(metrics.ltv), "desc": "Средняя сумма за всё время на клиента", "status": statuses["ltv"]},
        {"title": "LTV / ARPU", "value": f"{metrics.ltv_arpu:.1f}", "desc": "Сколько месяцев в среднем живёт клиент", "status": statuses["ltv_arpu"]},
        {"title": "Активные клиенты", "value": str(metrics.active_clients), "desc": "С действующим периодом", "status": statuses["active_clients"]},
        {
            "title": "Дебиторская задолженность",
            "value": format_money_int(metrics.debt),
            "desc": f"{format_percent(metrics.debt_to_mrr_pct)} от MRR",
            "status": statuses["debt"],
        },
    ], cols=3)

    section_title("MRR по месяцам", "Начисления, чьи недели оказания попадают в месяц, приведённые к месячной сумме")
    mrr_df = mrr_by_month(all_charges, today=today)
    st.plotly_chart(fig_mrr_by_month(mrr_df), use_container_width=True, config=PLOTLY_CONFIG_MINIMAL)

    churn_df = churn_by_month(all_charges, today=today)
    col_churn, col_flow = st.columns(2)
    with col_churn:
        section_title("Churn rate", "Пунктир: целевой уровень 5 %")
        st.plotly_chart(fig_churn_rate(churn_df), use_container_width=True, config=PLOTLY_CONFIG_MINIMAL)
    with col_flow:
        section_title("Новые и ушедшие клиенты")
        st.plotly_chart(fig_new_vs_churned(churn_df), use_container_width=True, config=PLOTLY_CONFIG_MINIMAL)

    section_title("Клиенты по неделям", "Сколько клиентов обслуживалось в каждую неделю")
    weekly = weekly_client_counts(all_charges, today=today)
    window = _week_window(len(weekly), current_week_index(weekly), key="dash_week_window")
    st.plotly_chart(fig_weekly_clients(weekly, window), use_container_width=True, config=PLOTLY_CONFIG_MINIMAL)


# --------------------------------------------------
# Клиенты
# --------------------------------------------------

SCREEN_CLIENTS = "clients"


def _change_manager(client_id: int, key: str) -> None:
    manager_id = st.session_state.get(key)
    try:
        dl.update_client(client_id, {"manager_id": manager_id})
        clear_error(SCREEN_CLIENTS)
    except PassportError as e:
        _fail(SCREEN_CLIENTS, e)


def page_clients():
    render_page_header({
        "title": "Клиенты",
        "subtitle": "Список клиентов, суммы начислений и оплат, ответственные менеджеры",
        "breadcrumbs": [PAGE_DASHBOARD, PAGE_CLIENTS],
    })
    render_error_banner(SCREEN_CLIENTS)

    try:
        clients = dl.fetch_clients()
        employees = dl.fetch_employees()
        all_charges = dl.fetch_charges()
        all_payments = dl.fetch_payments()
    except PassportError as e:
        st.error(e.message)
        return

    manager_ids = [None] + [e.id for e in employees]

    with st.expander("➕ Добавить клиента", expanded=not clients):
        with st.form("add_client", clear_on_submit=True):
            name = st.text_input("Название *")
            legal_name = st.text_input("Юридическое название")
            manager_id = st.selectbox(
                "Менеджер",
                manager_ids,
                format_func=lambda v: _employee_label(employees, v),
            )
            submitted = st.form_submit_button("Добавить")
        if submitted:
            try:
                payload = rules.validate_client_form(name, legal_name, manager_id)
                dl.insert_client(payload)
                clear_error(SCREEN_CLIENTS)
                st.rerun()
            except PassportError as e:
                _fail(SCREEN_CLIENTS, e)
                st.rerun()

    if not clients:
        st.info("Клиентов пока нет.")
        return

    stats = client_list_stats(all_charges, all_payments)

    st.download_button(
        label="⬇️ Выгрузить в CSV",
        data=build_clients_csv(clients, stats, employees),
        file_name=clients_csv_filename(),
        mime="text/csv",
    )

    header = st.columns([3, 2, 2, 2, 2, 3, 2])
    for col, title in zip(header, ["Название", "Начислено", "Оплачено", "Начало", "Завершение", "Менеджер", ""]):
        col.markdown(f"**{title}**")

    for client in clients:
        s = stats.get(client.id)
        row = st.columns([3, 2, 2, 2, 2, 3, 2])
        row[0].write(client.name)
        row[1].write(format_money_int(s.charged if s else 0))
        row[2].write(format_money_int(s.paid if s else 0))
        row[3].write(format_date(s.start if s else None))
        row[4].write(format_date(s.end if s else None))

        key = f"client_manager_{client.id}"
        current = client.manager_id if client.manager_id in manager_ids else None
        row[5].selectbox(
            "Менеджер",
            manager_ids,
            index=manager_ids.index(current),
            format_func=lambda v: _employee_label(employees, v),
            key=key,
            label_visibility="collapsed",
            on_change=_change_manager,
            args=(client.id, key),
        )
        row[6].button("Открыть", key=f"open_client_{client.id}", on_click=_open_client_card, args=(client.id,))


# --------------------------------------------------
# Карточка клиента
# --------------------------------------------------

SCREEN_CARD = "client_card"
SWITCH_KEY = "pp_switch_pending"

CF_SERVICE = "cf_service"
CF_START = "cf_start"
CF_END = "cf_end"
CF_AMOUNT = "cf_amount"
CF_COMMENT = "cf_comment"


def _reset_charge_form() -> None:
    st.session_state[CF_SERVICE] = ""
    st.session_state[CF_START] = date.today()
    st.session_state[CF_END] = None
    st.session_state[CF_AMOUNT] = ""
    st.session_state[CF_COMMENT] = ""


def _on_service_change(services) -> None:
    """Picking a service pre-fills cost and, for subscriptions, the end date."""
    svc = _service_by_name(services, st.session_state.get(CF_SERVICE) or "")
    if svc is None:
        return
    st.session_state[CF_AMOUNT] = format_amount_input(svc.base_cost)
    end = rules.default_end_date(st.session_state.get(CF_START), svc)
    if end is not None:
        st.session_state[CF_END] = end


def _on_start_change(services) -> None:
    svc = _service_by_name(services, st.session_state.get(CF_SERVICE) or "")
    end = rules.default_end_date(st.session_state.get(CF_START), svc)
    if end is not None:
        st.session_state[CF_END] = end


def _prefill_renewal(charge, charges, services) -> None:
    proposal = rules.propose_renewal(charge, charges, services)
    st.session_state[CF_SERVICE] = proposal.service_name
    st.session_state[CF_START] = proposal.start_date or date.today()
    st.session_state[CF_END] = proposal.end_date
    st.session_state[CF_AMOUNT] = format_amount_input(proposal.amount)
    st.session_state[CF_COMMENT] = ""


def _insert_charge(client_id: int, form: dict, subscription_type: str) -> None:
    dl.insert_charge({
        "client_id": client_id,
        "service_name": form["service_name"],
        "service_id": form["service_id"],
        "start_date": form["start_date"],
        "end_date": form["end_date"],
        "amount": form["amount"],
        "comment": form["comment"],
        "subscription_type": subscription_type,
    })


def _submit_charge_form(client_id: int, charges, services) -> None:
    st.session_state.pop(SWITCH_KEY, None)
    try:
        form = rules.validate_charge_form(
            st.session_state.get(CF_SERVICE),
            st.session_state.get(CF_START),
            st.session_state.get(CF_END),
            st.session_state.get(CF_AMOUNT),
            st.session_state.get(CF_COMMENT),
        )
        svc = _service_by_name(services, form.service_name)
        payload = {
            "service_name": form.service_name,
            "service_id": svc.id if svc else None,
            "start_date": form.start_date,
            "end_date": form.end_date,
            "amount": form.amount,
            "comment": form.comment,
        }

        if svc is not None and svc.is_subscription:
            rules.check_period_overlap(charges, form.service_name, form.start_date, form.end_date)
            other = rules.find_other_active_subscription(charges, form.service_name)
            if other is not None:
                # the user decides between switching and a parallel subscription
                st.session_state[SWITCH_KEY] = {
                    "client_id": client_id,
                    "existing_service": other.service_name,
                    "duration_days": svc.duration_days,
                    "payload": payload,
                }
                clear_error(SCREEN_CARD)
                return

        _insert_charge(client_id, payload, rules.infer_subscription_type(svc, charges, form.service_name))
        clear_error(SCREEN_CARD)
        _reset_charge_form()
    except PassportError as e:
        _fail(SCREEN_CARD, e)


def _resolve_switch(choice: str, charges) -> None:
    pending = st.session_state.pop(SWITCH_KEY, None)
    if not pending or choice == "cancel":
        return
    payload = dict(pending["payload"])
    try:
        if choice == "switch":
            period = rules.propose_switch_period(charges, pending["existing_service"], pending["duration_days"])
            if period is not None:
                payload["start_date"], payload["end_date"] = period
            _insert_charge(pending["client_id"], payload, rules.SUBSCRIPTION_RENEWAL)
        else:
            _insert_charge(pending["client_id"], payload, rules.SUBSCRIPTION_PRIMARY)
        clear_error(SCREEN_CARD)
        _reset_charge_form()
    except PassportError as e:
        _fail(SCREEN_CARD, e)


def _render_switch_choice(charges) -> None:
    pending = st.session_state.get(SWITCH_KEY)
    if not pending:
        return
    period = rules.propose_switch_period(charges, pending["existing_service"], pending["duration_days"])
    with st.container(border=True):
        st.markdown("**Подписка уже есть**")
        st.write(f"У клиента уже есть активная подписка «{pending['existing_service']}». Как добавить новую?")
        col_switch, col_sep, col_cancel = st.columns(3)
        col_switch.button(
            "Переход",
            key="switch_yes",
            type="primary",
            on_click=_resolve_switch,
            args=("switch", charges),
            help=f"Начало с {format_date(period[0])}, с учётом окончания текущей" if period else "Проверьте дату начала в форме",
        )
        col_sep.button(
            "Добавить отдельно",
            key="switch_separate",
            on_click=_resolve_switch,
            args=("separate", charges),
            help="Параллельная подписка с указанными датами",
        )
        col_cancel.button("Отмена", key="switch_cancel", on_click=_resolve_switch, args=("cancel", charges))


def _section_client_details(client, employees) -> None:
    section_title("Данные клиента")
    manager_ids = [None] + [e.id for e in employees]
    with st.form(f"client_details_{client.id}"):
        name = st.text_input("Название *", value=client.name)
        legal_name = st.text_input("Юридическое название", value=client.legal_name or "")
        current = client.manager_id if client.manager_id in manager_ids else None
        manager_id = st.selectbox(
            "Менеджер",
            manager_ids,
            index=manager_ids.index(current),
            format_func=lambda v: _employee_label(employees, v),
        )
        submitted = st.form_submit_button("Сохранить")
    if submitted:
        try:
            patch = rules.validate_client_form(name, legal_name, manager_id)
            request_confirmation(SCREEN_CARD, "save_client", "Сохранить изменения данных клиента?", {
                "client_id": client.id,
                "patch": patch,
            })
        except PassportError as e:
            _fail(SCREEN_CARD, e)
        st.rerun()


def _section_charge_form(client, charges, services) -> None:
    section_title("Начисления")
    if CF_START not in st.session_state:
        _reset_charge_form()

    names = [""] + [s.name for s in services]
    if st.session_state.get(CF_SERVICE) not in names:
        names.append(st.session_state[CF_SERVICE])

    c1, c2, c3, c4 = st.columns([3, 2, 2, 2])
    c1.selectbox(
        "Услуга *",
        names,
        key=CF_SERVICE,
        format_func=lambda v: v or "— выберите услугу —",
        on_change=_on_service_change,
        args=(services,),
    )
    c2.date_input("Начало *", key=CF_START, format="DD.MM.YYYY", on_change=_on_start_change, args=(services,))
    c3.date_input("Конец *", key=CF_END, format="DD.MM.YYYY")
    c4.text_input("Стоимость *", key=CF_AMOUNT)
    st.text_input("Комментарий", key=CF_COMMENT)
    st.button(
        "Добавить начисление",
        key="add_charge",
        type="primary",
        on_click=_submit_charge_form,
        args=(client.id, charges, services),
    )
    _render_switch_choice(charges)


def _charge_edit_form(c, charges, services) -> None:
    names = [s.name for s in services]
    if c.service_name not in names:
        names.insert(0, c.service_name)
    with st.form(f"edit_charge_{c.id}"):
        col_svc, col_start, col_end, col_amount = st.columns([3, 2, 2, 2])
        service_name = col_svc.selectbox("Услуга", names, index=names.index(c.service_name))
        start = col_start.date_input("Начало", value=c.start_date, format="DD.MM.YYYY")
        end = col_end.date_input("Конец", value=c.end_date, format="DD.MM.YYYY")
        amount = col_amount.text_input("Стоимость", value=format_amount_input(c.amount))
        comment = st.text_input("Комментарий", value=c.comment or "")
        submitted = st.form_submit_button("Сохранить")
    if not submitted:
        return
    try:
        form = rules.validate_charge_form(service_name, start, end, amount, comment)
        svc = _service_by_name(services, form.service_name)
        if svc is not None and svc.is_subscription:
            rules.check_period_overlap(charges, form.service_name, form.start_date, form.end_date, exclude_id=c.id)
        request_confirmation(SCREEN_CARD, "update_charge", "Сохранить изменения начисления?", {
            "id": c.id,
            "patch": {
                "service_name": form.service_name,
                "start_date": form.start_date,
                "end_date": form.end_date,
                "amount": form.amount,
                "comment": form.comment,
            },
        })
    except PassportError as e:
        _fail(SCREEN_CARD, e)
    st.rerun()


def _charge_actions(c, charges, services, today: date) -> None:
    actions = rules.available_actions(c, today)
    choice = st.selectbox(
        "Действие",
        [None] + actions,
        format_func=lambda a: "—" if a is None else rules.ACTION_LABELS[a],
        key=f"charge_action_{c.id}",
    )
    if choice is None:
        return

    if choice == rules.ACTION_RENEW:
        st.button(
            "Заполнить форму продления",
            key=f"renew_{c.id}",
            on_click=_prefill_renewal,
            args=(c, charges, services),
        )
        st.caption("Новый период начнётся на следующий день после окончания последнего периода этой услуги.")

    elif choice == rules.ACTION_EDIT:
        _charge_edit_form(c, charges, services)

    elif choice in (rules.ACTION_PAUSE, rules.ACTION_RESUME):
        label = "Дата приостановки" if choice == rules.ACTION_PAUSE else "Дата возобновления"
        when = st.date_input(label, value=today, format="DD.MM.YYYY", key=f"{choice}_date_{c.id}")
        if st.button(rules.ACTION_LABELS[choice], key=f"{choice}_btn_{c.id}"):
            request_confirmation(
                SCREEN_CARD,
                choice,
                f"{rules.ACTION_LABELS[choice]} «{c.service_name}» с {format_date(when)}?",
                {"id": c.id, "date": when.isoformat()},
            )
            st.rerun()

    elif choice == rules.ACTION_CANCEL:
        when = st.date_input("Дата отмены", value=today, format="DD.MM.YYYY", key=f"cancel_date_{c.id}")
        preview = rules.cancellation_preview(c, when)
        if preview is not None:
            st.write(
                f"Оказано ({preview.earned_days} из {preview.total_days} дн.): {format_money(preview.earned)}  \n"
                f"К сторнированию: {format_money(preview.unearned)}"
            )
        if st.button("Отменить услугу", key=f"cancel_btn_{c.id}"):
            try:
                cancel_date = rules.validate_cancel_date(c, when)
                request_confirmation(
                    SCREEN_CARD,
                    "cancel",
                    f"Отменить «{c.service_name}» с {format_date(cancel_date)}? Неоказанная часть будет сторнирована.",
                    {"id": c.id, "date": cancel_date.isoformat()},
                )
            except PassportError as e:
                _fail(SCREEN_CARD, e)
            st.rerun()

    elif choice == rules.ACTION_DELETE:
        if st.button("Удалить запись", key=f"delete_charge_{c.id}"):
            request_confirmation(SCREEN_CARD, "delete_charge", f"Удалить начисление «{_charge_label(c)}»?", {"id": c.id})
            st.rerun()


def _section_charges_list(charges, services, today: date) -> None:
    if not charges:
        st.caption("Начислений пока нет.")
        return
    for c in rules.sort_charges_for_display(charges, today):
        status = rules.charge_display_status(c, today)
        title = f"{_charge_label(c)} · {rules.STATUS_LABELS[status]}"
        with st.expander(title):
            kind = {
                rules.SUBSCRIPTION_ONE_TIME: "Разовая",
                rules.SUBSCRIPTION_PRIMARY: "Подписка",
                rules.SUBSCRIPTION_RENEWAL: "Подписка · продление",
            }.get(c.subscription_type, "—")
            st.caption(f"Тип: {kind}")
            if c.comment:
                st.caption(f"Комментарий: {c.comment}")
            if c.is_paused and c.freeze_start:
                st.caption(f"Пауза с {format_date(c.freeze_start)}")
            elif c.freeze_start and c.freeze_end:
                st.caption(f"Была пауза: {format_period(c.freeze_start, c.freeze_end)}")
            _charge_actions(c, charges, services, today)


def _section_payments(client, charges, payments) -> None:
    section_title("Оплаты")
    charge_ids = [c.id for c in charges]
    charges_by_id = {c.id: c for c in charges}

    with st.form("add_payment", clear_on_submit=True):
        col_charge, col_date, col_amount = st.columns([4, 2, 2])
        charge_id = col_charge.selectbox(
            "Начисление *",
            [None] + charge_ids,
            format_func=lambda v: "— выберите начисление —" if v is None else _charge_label(charges_by_id[v]),
        )
        payment_date = col_date.date_input("Дата *", value=date.today(), format="DD.MM.YYYY")
        amount = col_amount.text_input("Сумма *")
        comment = st.text_input("Комментарий")
        submitted = st.form_submit_button("Добавить оплату")
    if submitted:
        try:
            form = rules.validate_payment_form(charge_id, payment_date, amount, comment)
            linked = charges_by_id.get(form.charge_id)
            dl.insert_payment({
                "client_id": client.id,
                "service_name": linked.service_name if linked else "",
                "service_id": linked.service_id if linked else None,
                "charge_id": form.charge_id,
                "amount": form.amount,
                "payment_date": form.payment_date,
                "comment": form.comment,
            })
            clear_error(SCREEN_CARD)
        except PassportError as e:
            _fail(SCREEN_CARD, e)
        st.rerun()

    if not payments:
        st.caption("Оплат пока нет.")
        return

    for p in payments:
        with st.expander(f"{format_date(p.payment_date)} · {p.service_name or '—'} · {format_money(p.amount)}"):
            if p.comment:
                st.caption(f"Комментарий: {p.comment}")
            with st.form(f"edit_payment_{p.id}"):
                col_date, col_amount = st.columns(2)
                new_date = col_date.date_input("Дата", value=p.payment_date, format="DD.MM.YYYY")
                new_amount = col_amount.text_input("Сумма", value=format_amount_input(p.amount))
                new_comment = st.text_input("Комментарий", value=p.comment or "")
                col_save, col_delete = st.columns(2)
                save = col_save.form_submit_button("Сохранить")
                delete = col_delete.form_submit_button("Удалить запись")
            if save:
                value = rules.parse_amount(new_amount)
                if value is None or new_date is None:
                    _fail(SCREEN_CARD, ValidationError("Заполните обязательные поля: Дата, Сумма"))
                else:
                    request_confirmation(SCREEN_CARD, "update_payment", "Сохранить изменения оплаты?", {
                        "id": p.id,
                        "patch": {"payment_date": new_date, "amount": value, "comment": new_comment.strip() or None},
                    })
                st.rerun()
            if delete:
                request_confirmation(
                    SCREEN_CARD,
                    "delete_payment",
                    f"Удалить оплату {format_money(p.amount)} от {format_date(p.payment_date)}?",
                    {"id": p.id},
                )
                st.rerun()


def _position_frame(rows, label_title: str, debt_attr: Optional[str] = None) -> pd.DataFrame:
    records = []
    for r in rows:
        rec = {
            label_title: r.label,
            "Начислено": format_money_int(r.charged),
            "Оплачено": format_money_int(r.paid),
            "К оплате": format_money_int(max(0.0, r.to_pay)),
            "Оказано": format_money_int(r.rendered),
        }
        if debt_attr is None:
            if r.client_debt:
                rec["Задолженность"] = f"Клиент: {format_money_int(r.client_debt)}"
            elif r.operator_debt:
                rec["Задолженность"] = f"Мы: {format_money_int(r.operator_debt)}"
            else:
                rec["Задолженность"] = "—"
        else:
            rec["Недель"] = r.debt_weeks
            rec["Задолженность"] = format_money_int(getattr(r, debt_attr) or 0.0)
        records.append(rec)
    return pd.DataFrame(records)


def _section_position(charges, payments, today: date) -> None:
    services = unique_services(charges)
    if not services:
        return
    active = services[0]
    if len(services) > 1:
        active = st.selectbox("Услуга", services, key="card_service_filter")
    own_charges = [c for c in charges if c.service_name == active]
    own_payments = [p for p in payments if p.service_name == active]
    row = summarize_position(own_charges, own_payments, today=today, label=active)

    cols = st.columns(5)
    cols[0].metric("Начислено", format_money_int(row.charged))
    cols[1].metric("Оплачено", format_money_int(row.paid))
    cols[2].metric("К оплате", format_money_int(max(0.0, row.to_pay)))
    cols[3].metric("Оказано", format_money_int(row.rendered))
    if row.client_debt:
        cols[4].metric("Долг клиента", format_money_int(row.client_debt), f"{row.debt_weeks} нед.", delta_color="inverse")
    elif row.operator_debt:
        cols[4].metric("Наш долг", format_money_int(row.operator_debt), f"{row.debt_weeks} нед.", delta_color="off")
    else:
        cols[4].metric("Задолженность", "—")


def _card_frame(card, label_title: str) -> pd.DataFrame:
    records = [
        {
            label_title: r.label,
            "Сальдо на начало": format_money(r.opening),
            "Начислено": format_money(r.charged),
            "Оплачено": format_money(r.paid),
            "Сальдо на конец": format_money(r.closing),
        }
        for r in card.rows + [card.total]
    ]
    return pd.DataFrame(records)


def _render_account_card(entries, key: str, group_by, labels: Optional[Dict] = None, label_title: str = "Услуга") -> None:
    account = receivables_account()
    period_from, period_to = _period_inputs(key)
    card = account_card(entries, account, period_from, period_to, group_by=group_by, labels=labels)
    if not card.rows:
        st.caption("Движений по счёту нет.")
        return
    st.dataframe(_card_frame(card, label_title), hide_index=True, use_container_width=True)
    for r in card.rows:
        moves = card_details(entries, account, r.key, period_from, period_to, group_by=group_by)
        with st.expander(f"Движения: {r.label} ({len(moves)})"):
            if not moves:
                st.caption("Нет движений за период.")
                continue
            st.dataframe(
                pd.DataFrame([
                    {
                        "Дата": format_date(m.entry_date),
                        "Документ": m.document + (f" ({m.document_extra})" if m.document_extra else ""),
                        "Дт": m.debit_account_code,
                        "Кт": m.credit_account_code,
                        "Сумма": format_money(m.amount),
                    }
                    for m in moves
                ]),
                hide_index=True,
                use_container_width=True,
            )


def _section_weekly_chart(charges, payments, today: date) -> None:
    charged = sum(c.amount for c in charges)
    paid = sum(p.amount for p in payments)
    share = round(paid / charged * 100) if charged else 0
    section_title(
        "Дашборд начислений",
        f"Всего начислено: {format_money(charged)} · Оплачено: {format_money(paid)} · Доля оплаты: {share}%",
    )
    frame, services = weekly_charge_series(charges, payments, today=today)
    if frame.empty or frame["total"].sum() == 0:
        st.caption("Нет данных для графика.")
        return
    by_service = st.toggle("По услугам", key="card_chart_by_service")
    window = _week_window(len(frame), current_week_index(frame), key="card_week_window")
    st.plotly_chart(
        fig_weekly_charges(frame, services, window, by_service=by_service),
        use_container_width=True,
        config=PLOTLY_CONFIG_MINIMAL,
    )


def _section_turnover(entries) -> None:
    section_title("Оборотно-сальдовая ведомость", "Обороты по счетам в разрезе услуг")
    period_from, period_to = _period_inputs("osv_period")
    sheet = turnover_sheet(entries, period_from, period_to)
    if not sheet.services:
        st.caption("Проводок нет.")
        return
    for svc in sheet.services:
        st.markdown(f"**{svc.service_name}**")
        records = [
            {
                "Счёт": r.account,
                "Название": r.name,
                "Оборот Дт": format_money(r.debit),
                "Оборот Кт": format_money(r.credit),
                "Сальдо": format_money(abs(r.closing)),
                "": r.side,
            }
            for r in svc.rows
        ]
        records.append({
            "Счёт": "",
            "Название": "Итого",
            "Оборот Дт": format_money(svc.total_debit),
            "Оборот Кт": format_money(svc.total_credit),
            "Сальдо": "",
            "": "",
        })
        st.dataframe(pd.DataFrame(records), hide_index=True, use_container_width=True)
    st.caption(
        f"Всего: Дт {format_money(sheet.total_debit)} · Кт {format_money(sheet.total_credit)} "
        f"({totals_side(sheet.total_debit, sheet.total_credit)})"
    )


def page_client_card():
    try:
        clients = dl.fetch_clients()
    except PassportError as e:
        st.error(e.message)
        return

    if not clients:
        render_page_header({"title": "Карточка клиента", "breadcrumbs": [PAGE_DASHBOARD, PAGE_CLIENTS]})
        st.info("Сначала добавьте клиента.")
        return

    client_ids = [c.id for c in clients]
    names = {c.id: c.name for c in clients}
    if st.session_state.get(SELECTED_CLIENT_KEY) not in client_ids:
        st.session_state[SELECTED_CLIENT_KEY] = client_ids[0]
    client_id = st.sidebar.selectbox(
        "Клиент",
        client_ids,
        key=SELECTED_CLIENT_KEY,
        format_func=lambda v: names.get(v, f"Клиент #{v}"),
    )

    try:
        client = dl.fetch_client(client_id)
        employees = dl.fetch_employees()
        services = dl.fetch_services()
        charges = dl.fetch_charges(client_id)
        payments = dl.fetch_payments(client_id)
        entries = dl.fetch_journal_entries(client_id)
    except PassportError as e:
        st.error(e.message)
        return

    if client is None:
        st.info("Клиент не найден.")
        return

    render_page_header({
        "title": client.name,
        "subtitle": client.legal_name or "",
        "breadcrumbs": [PAGE_DASHBOARD, PAGE_CLIENTS, client.name],
    })
    render_error_banner(SCREEN_CARD)

    pending = render_confirmation(SCREEN_CARD)
    if pending is not None:
        try:
            dl.run_card_action(pending["action"], pending["payload"])
            clear_error(SCREEN_CARD)
        except PassportError as e:
            _fail(SCREEN_CARD, e)
        st.rerun()

    today = date.today()

    _section_client_details(client, employees)
    _section_charge_form(client, charges, services)
    _section_charges_list(charges, services, today)
    _section_payments(client, charges, payments)

    section_title("Сводка по услуге")
    _section_position(charges, payments, today)

    section_title(f"Карточка расчётов с клиентом (счёт {receivables_account()})")
    _render_account_card(entries, "card62_period", group_by=by_service)

    section_title("Карточка оказания услуг")
    rows = positions_by_service(charges, payments, today=today)
    if rows:
        frame = _position_frame(rows, "Услуга")
        if len(rows) > 1:
            frame = pd.concat([frame, pd.DataFrame([{
                "Услуга": "Итого",
                "Начислено": format_money_int(sum(r.charged for r in rows)),
                "Оплачено": format_money_int(sum(r.paid for r in rows)),
                "К оплате": format_money_int(max(0.0, sum(r.to_pay for r in rows))),
                "Оказано": format_money_int(sum(r.rendered for r in rows)),
                "Задолженность": "",
            }])], ignore_index=True)
        st.dataframe(frame, hide_index=True, use_container_width=True)
        st.caption(
            "«Мы» — клиент переплатил, оказываем неделями вперёд. "
            "«Клиент» — должен за оказанные, но не оплаченные недели."
        )
    else:
        st.caption("Нет начислений.")

    _section_weekly_chart(charges, payments, today)
    _section_turnover(entries)


# --------------------------------------------------
# Сотрудники
# --------------------------------------------------

SCREEN_EMPLOYEES = "employees"


def _change_position(employee_id: int, key: str) -> None:
    try:
        dl.update_employee_position(employee_id, st.session_state.get(key))
        clear_error(SCREEN_EMPLOYEES)
    except PassportError as e:
        _fail(SCREEN_EMPLOYEES, e)


def page_employees():
    render_page_header({
        "title": "Сотрудники",
        "subtitle": "Менеджеры, за которыми закрепляются клиенты",
        "breadcrumbs": [PAGE_DASHBOARD, PAGE_EMPLOYEES],
    })
    render_error_banner(SCREEN_EMPLOYEES)

    try:
        employees = dl.fetch_employees()
        positions = dl.fetch_positions()
    except PassportError as e:
        st.error(e.message)
        return

    position_ids = [None] + [p.id for p in positions]
    position_names = {p.id: p.name for p in positions}

    def position_label(v):
        return "—" if v is None else position_names.get(v, f"#{v}")

    with st.form("add_employee", clear_on_submit=True):
        col_name, col_pos = st.columns([3, 2])
        name = col_name.text_input("Имя *")
        position_id = col_pos.selectbox("Должность", position_ids, format_func=position_label)
        submitted = st.form_submit_button("Добавить сотрудника")
    if submitted:
        try:
            dl.insert_employee(rules.validate_employee_form(name, position_id))
            clear_error(SCREEN_EMPLOYEES)
        except PassportError as e:
            _fail(SCREEN_EMPLOYEES, e)
        st.rerun()

    if not employees:
        st.info("Сотрудников пока нет.")
        return

    for emp in employees:
        col_name, col_pos, col_created = st.columns([3, 3, 2])
        col_name.write(emp.name)
        key = f"employee_position_{emp.id}"
        current = emp.position_id if emp.position_id in position_ids else None
        col_pos.selectbox(
            "Должность",
            position_ids,
            index=position_ids.index(current),
            format_func=position_label,
            key=key,
            label_visibility="collapsed",
            on_change=_change_position,
            args=(emp.id, key),
        )
        col_created.caption(format_date(emp.created_at))


# --------------------------------------------------
# Услуги
# --------------------------------------------------

SCREEN_SERVICES = "services"

SERVICE_KIND_LABELS = {"one-time": "Разовая", "subscription": "Подписка"}


def page_services():
    render_page_header({
        "title": "Услуги",
        "subtitle": "Каталог услуг: базовая стоимость, тип и длительность подписки",
        "breadcrumbs": [PAGE_DASHBOARD, PAGE_SERVICES],
    })
    render_error_banner(SCREEN_SERVICES)

    with st.form("add_service", clear_on_submit=True):
        col_name, col_cost = st.columns([3, 2])
        name = col_name.text_input("Название *")
        cost = col_cost.text_input("Базовая стоимость, ₽")
        col_kind, col_duration = st.columns([3, 2])
        kind = col_kind.radio(
            "Тип",
            list(SERVICE_KIND_LABELS),
            format_func=SERVICE_KIND_LABELS.get,
            horizontal=True,
        )
        duration = col_duration.number_input("Длительность, дней", min_value=0, value=30, step=1)
        submitted = st.form_submit_button("Добавить услугу")
    if submitted:
        try:
            form = rules.validate_service_form(name, cost, kind, duration if kind == "subscription" else None)
            dl.insert_service({
                "name": form.name,
                "base_cost": form.base_cost,
                "type": form.type,
                "duration_days": form.duration_days,
            })
            clear_error(SCREEN_SERVICES)
        except PassportError as e:
            _fail(SCREEN_SERVICES, e)
        st.rerun()

    try:
        services = dl.fetch_services()
    except PassportError as e:
        st.error(e.message)
        return

    if not services:
        st.info("Услуг пока нет.")
        return

    st.dataframe(
        pd.DataFrame([
            {
                "Название": s.name,
                "Стоимость": format_money(s.base_cost),
                "Тип": SERVICE_KIND_LABELS.get(s.type, "—"),
                "Длительность, дней": s.duration_days or "",
                "Создана": format_date(s.created_at),
            }
            for s in services
        ]),
        hide_index=True,
        use_container_width=True,
    )


# --------------------------------------------------
# Отчёты
# --------------------------------------------------

def _debtors_table(rows, totals, debt_attr: str) -> None:
    if not rows:
        st.caption("Нет.")
        return
    frame = _position_frame(rows, "Клиент", debt_attr=debt_attr)
    frame = pd.concat([frame, pd.DataFrame([{
        "Клиент": "Итого",
        "Начислено": format_money_int(totals.charged),
        "Оплачено": format_money_int(totals.paid),
        "К оплате": format_money_int(max(0.0, totals.to_pay)),
        "Оказано": format_money_int(totals.rendered),
        "Недель": "",
        "Задолженность": format_money_int(totals.debt),
    }])], ignore_index=True)
    st.dataframe(frame, hide_index=True, use_container_width=True)


def page_reports():
    render_page_header({
        "title": "Отчёты",
        "subtitle": "Расчёты с клиентами и задолженность по оказанию услуг",
        "breadcrumbs": [PAGE_DASHBOARD, PAGE_REPORTS],
    })

    try:
        entries = dl.fetch_journal_entries()
        all_charges = dl.fetch_charges()
        all_payments = dl.fetch_payments()
        clients = dl.fetch_clients()
    except PassportError as e:
        st.error(e.message)
        return

    names: Dict[int, str] = {c.id: c.name for c in clients}

    section_title(f"Карточка счёта {receivables_account()}", account_name(receivables_account()))
    _render_account_card(entries, "report62_period", group_by=by_client, labels=names, label_title="Клиент")

    section_title("Карточка оказания услуг")
    rows = positions_by_client(all_charges, all_payments, names, today=date.today())
    we_owe, we_owe_totals, owe_us, owe_us_totals = split_debtors(rows)

    st.markdown("**Кому мы должны оказание услуг**")
    _debtors_table(we_owe, we_owe_totals, "operator_debt")
    st.markdown("**Кто нам должен за оказанные услуги**")
    _debtors_table(owe_us, owe_us_totals, "client_debt")


# --------------------------------------------------
# О сервисе
# --------------------------------------------------

def page_about():
    render_page_header({"title": "О сервисе", "breadcrumbs": [PAGE_DASHBOARD, PAGE_ABOUT]})
    st.write(
        "Pass-Port ведёт клиентов, услуги и подписки: начисления распределяются по неделям "
        "оказания (первая неделя после начала подписки считается вводной), оплаты сопоставляются "
        "с оказанными неделями, а бухгалтерские проводки по счетам 62, 90, 98 и 51 формируются "
        "процедурами на стороне базы данных при начислении, оплате, паузе, возобновлении и отмене."
    )


# --------------------------------------------------
# MAIN ENTRY POINT
# --------------------------------------------------

def run_app():
    inject_global_passport_styles()

    page_choice = st.sidebar.radio("Раздел", PAGE_NAMES, key=NAV_KEY)

    if page_choice == PAGE_DASHBOARD:
        page_dashboard()
    elif page_choice == PAGE_CLIENTS:
        page_clients()
    elif page_choice == PAGE_CLIENT_CARD:
        page_client_card()
    elif page_choice == PAGE_EMPLOYEES:
        page_employees()
    elif page_choice == PAGE_SERVICES:
        page_services()
    elif page_choice == PAGE_REPORTS:
        page_reports()
    elif page_choice == PAGE_ABOUT:
        page_about()


if __name__ == "__main__":
    run_app()
