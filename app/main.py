"""
Streamlit Frontend for MoneyBook

This is the screen people use every day to keep track of their money.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything destructive
3. Clear error messages in simple language
4. Visual feedback for all operations
5. No hidden actions

Every page goes through the orchestrator flows. The UI never touches
storage directly and never computes a balance itself.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import NAMESPACE_URL, UUID, uuid5

import streamlit as st

from moneybook.config import get_settings, validate_all_settings
from moneybook.engine import (
    BUDGET_TEMPLATES,
    emergency_fund_progress,
    spending_tips,
    top_categories,
)
from moneybook.models import (
    AccountKind,
    BudgetStatus,
    LoanDirection,
    TransactionFilter,
    TransactionType,
)
from moneybook.orchestrator import AppComponents, create_app_components
from moneybook.services.identity import (
    AuthenticationRequiredError,
    IdentityProviderInterface,
)
from moneybook.services.storage import StorageError
from moneybook.validation import LedgerValidationError, LedgerValidator


# Page configuration
st.set_page_config(
    page_title="MoneyBook",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


CURRENCY = get_settings().app.currency_symbol

STATUS_BADGES = {
    BudgetStatus.SAFE: "🟢",
    BudgetStatus.WARNING: "🟡",
    BudgetStatus.EXCEEDED: "🔴",
}


class SessionIdentityProvider(IdentityProviderInterface):
    """Reads the signed-in user from the current Streamlit session."""

    def current_user_id(self) -> Optional[UUID]:
        return st.session_state.get("user_id")


def sign_in(username: str) -> None:
    """Local sign-in: the same username always maps to the same user."""
    st.session_state.user_id = uuid5(NAMESPACE_URL, f"moneybook:{username.strip().lower()}")
    st.session_state.username = username.strip()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        return create_app_components(SessionIdentityProvider(), use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(SessionIdentityProvider(), use_storage=False)


def money(amount: Decimal) -> str:
    return f"{CURRENCY}{amount:,.2f}"


def show_failure(e: Exception) -> None:
    """Turn a flow exception into a message people can act on."""
    if isinstance(e, LedgerValidationError):
        st.error(LedgerValidator().get_user_friendly_summary(e.result))
    elif isinstance(e, AuthenticationRequiredError):
        st.warning(str(e))
    elif isinstance(e, StorageError):
        st.error(f"Could not save your change: {e}")
    else:
        st.error(f"Error: {e}")


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 MoneyBook")
    st.sidebar.markdown("---")

    if st.session_state.get("user_id") is None:
        render_sign_in_page()
        return

    st.sidebar.markdown(f"Signed in as **{st.session_state.username}**")
    if st.sidebar.button("Sign out"):
        st.session_state.user_id = None
        st.session_state.seeded = False
        st.rerun()

    # First load for this user: create default categories in the background
    if not st.session_state.get("seeded"):
        run_async(components.categories.seed_defaults())
        st.session_state.seeded = True

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏦 Accounts", "💸 Transactions", "🤝 Loans", "🎯 Budgets", "📊 Summary", "⚙️ Settings"],
        index=0,
    )

    if page == "🏦 Accounts":
        render_accounts_page(components)
    elif page == "💸 Transactions":
        render_transactions_page(components)
    elif page == "🤝 Loans":
        render_loans_page(components)
    elif page == "🎯 Budgets":
        render_budgets_page(components)
    elif page == "📊 Summary":
        render_summary_page(components)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_sign_in_page():
    st.title("👋 Welcome to MoneyBook")
    st.markdown("Sign in to see your accounts.")

    username = st.text_input("Your name", placeholder="e.g., priya")
    if st.button("Sign in", type="primary") and username.strip():
        sign_in(username)
        st.rerun()


def render_accounts_page(components: AppComponents):
    """Render the accounts page."""
    st.title("🏦 Accounts")

    try:
        accounts = run_async(components.accounts.list_accounts())
    except Exception as e:
        show_failure(e)
        return

    total = sum((a.balance for a in accounts), Decimal("0"))
    st.markdown(f'<div class="big-number">{money(total)}</div>', unsafe_allow_html=True)
    st.caption(f"Across {len(accounts)} account(s)")

    with st.expander("➕ Add Account", expanded=not accounts):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Account name *")
            kind = st.selectbox(
                "Type",
                options=list(AccountKind),
                format_func=lambda k: k.value.title(),
            )
        with col2:
            opening = st.number_input("Opening balance", value=0.0, step=100.0, format="%.2f")
            color = st.color_picker("Color", value="#3b82f6")

        if st.button("Save Account", type="primary"):
            try:
                run_async(components.accounts.add_account(
                    name=name,
                    opening_balance=Decimal(str(opening)),
                    color=color,
                    kind=kind,
                ))
                st.success(f"✅ Added {name}")
                st.rerun()
            except Exception as e:
                show_failure(e)

    for account in accounts:
        with st.container(border=True):
            col1, col2, col3 = st.columns([3, 2, 1])
            with col1:
                st.markdown(f"### {account.name}")
                st.caption(account.kind.value.title())
            with col2:
                st.metric("Balance", money(account.balance))
            with col3:
                if st.button("🗑️ Delete", key=f"delete-{account.id}"):
                    st.session_state.pending_account_delete = account.id

            with st.expander("Edit / History"):
                new_name = st.text_input("Name", value=account.name, key=f"name-{account.id}")
                new_balance = st.number_input(
                    "Balance",
                    value=float(account.balance),
                    step=100.0,
                    format="%.2f",
                    key=f"balance-{account.id}",
                )
                if st.button("Save changes", key=f"save-{account.id}"):
                    # Send only what was edited; an untouched balance field must
                    # not overwrite a balance another session has since moved
                    balance = Decimal(str(new_balance)).quantize(Decimal("0.01"))
                    try:
                        run_async(components.accounts.update_account(
                            account.id,
                            name=new_name if new_name != account.name else None,
                            balance=balance if balance != account.balance else None,
                        ))
                        st.rerun()
                    except Exception as e:
                        show_failure(e)

                entries, series = run_async(components.transactions.account_history(account.id))
                if series:
                    st.line_chart(
                        {"balance": [float(p.balance) for p in series]},
                    )
                for entry in entries[:10]:
                    tx = entry.transaction
                    st.markdown(
                        f"{tx.date:%d %b %Y} · {tx.type.value.replace('_', ' ')} · "
                        f"{money(entry.change)} → {money(entry.balance_after)}"
                    )

            if st.session_state.get("pending_account_delete") == account.id:
                impact = run_async(components.accounts.deletion_impact(account.id))
                st.markdown(
                    f'<div class="warning-box">{impact.warning_message}</div>',
                    unsafe_allow_html=True,
                )
                if st.button("Yes, delete", key=f"confirm-{account.id}"):
                    run_async(components.accounts.delete_account(account.id))
                    st.session_state.pending_account_delete = None
                    st.rerun()


def render_transactions_page(components: AppComponents):
    """Render the transactions page."""
    st.title("💸 Transactions")

    try:
        accounts = run_async(components.accounts.list_accounts())
        categories = run_async(components.categories.list_categories())
    except Exception as e:
        show_failure(e)
        return

    if not accounts:
        st.info("Add an account first on the Accounts page.")
        return

    account_names = {a.id: a.name for a in accounts}
    category_names = {c.id: f"{c.icon or ''} {c.name}".strip() for c in categories}

    with st.expander("➕ Record Transaction", expanded=True):
        tx_type = st.selectbox(
            "Type",
            options=[TransactionType.EXPENSE, TransactionType.INCOME, TransactionType.TRANSFER],
            format_func=lambda t: t.value.title(),
        )
        col1, col2 = st.columns(2)
        with col1:
            account_id = st.selectbox(
                "From account" if tx_type == TransactionType.TRANSFER else "Account",
                options=list(account_names),
                format_func=account_names.get,
            )
            amount = st.number_input(f"Amount ({CURRENCY}) *", min_value=0.0, step=10.0, format="%.2f")
        with col2:
            to_account_id = None
            category_id = None
            if tx_type == TransactionType.TRANSFER:
                to_account_id = st.selectbox(
                    "To account",
                    options=[a for a in account_names if a != account_id],
                    format_func=account_names.get,
                )
            elif tx_type == TransactionType.EXPENSE:
                category_id = st.selectbox(
                    "Category",
                    options=[None] + list(category_names),
                    format_func=lambda c: "Uncategorized" if c is None else category_names[c],
                )
            tx_date = st.date_input("Date", value=date.today())
        description = st.text_input("Description (optional)")

        if st.button("Save Transaction", type="primary"):
            try:
                _, result = run_async(components.transactions.record_transaction(
                    tx_type=tx_type,
                    amount=Decimal(str(amount)),
                    account_id=account_id,
                    to_account_id=to_account_id,
                    category_id=category_id,
                    description=description,
                    tx_date=tx_date,
                ))
                st.success("✅ Transaction saved")
                for warning in result.warnings:
                    st.warning(warning)
            except Exception as e:
                show_failure(e)

    st.markdown("---")

    # Filters
    col1, col2, col3 = st.columns(3)
    with col1:
        filter_account = st.selectbox(
            "Account",
            options=[None] + list(account_names),
            format_func=lambda a: "All accounts" if a is None else account_names[a],
        )
    with col2:
        filter_type = st.selectbox(
            "Type",
            options=[None] + list(TransactionType),
            format_func=lambda t: "All types" if t is None else t.value.replace("_", " ").title(),
            key="filter-type",
        )
    with col3:
        search = st.text_input("Search")

    criteria = TransactionFilter(
        account_id=filter_account,
        type=filter_type,
        search=search or None,
    )
    transactions = run_async(components.transactions.list_transactions(criteria))

    filename, content = run_async(components.transactions.export_csv(criteria))
    st.download_button("⬇️ Export CSV", data=content, file_name=filename, mime="text/csv")

    if not transactions:
        st.info("No transactions match these filters.")

    for tx in transactions:
        col1, col2, col3 = st.columns([4, 2, 1])
        with col1:
            target = account_names.get(tx.account_id, "Deleted account")
            if tx.to_account_id:
                target += f" → {account_names.get(tx.to_account_id, 'Deleted account')}"
            st.markdown(f"**{tx.description or tx.type.value.replace('_', ' ').title()}**")
            st.caption(f"{tx.date:%d %b %Y} · {target}")
        with col2:
            st.markdown(money(tx.amount))
        with col3:
            if st.button("🗑️", key=f"tx-{tx.id}"):
                try:
                    run_async(components.transactions.delete_transaction(tx.id))
                    st.rerun()
                except Exception as e:
                    show_failure(e)


def render_loans_page(components: AppComponents):
    """Render the loans page."""
    st.title("🤝 Loans")

    accounts = run_async(components.accounts.list_accounts())
    account_names = {a.id: a.name for a in accounts}

    if accounts:
        with st.expander("➕ New Loan"):
            direction = st.radio(
                "Direction",
                options=list(LoanDirection),
                format_func=lambda d: "I lent money" if d == LoanDirection.GIVEN else "I borrowed money",
                horizontal=True,
            )
            person = st.text_input("Person *")
            amount = st.number_input(f"Amount ({CURRENCY}) *", min_value=0.0, step=100.0, format="%.2f")
            account_id = st.selectbox("Account", options=list(account_names), format_func=account_names.get)
            description = st.text_input("Note (optional)")
            if st.button("Save Loan", type="primary"):
                try:
                    run_async(components.loans.create_loan(
                        person_name=person,
                        amount=Decimal(str(amount)),
                        direction=direction,
                        account_id=account_id,
                        description=description,
                    ))
                    st.rerun()
                except Exception as e:
                    show_failure(e)

    col1, col2 = st.columns(2)
    with col1:
        direction_filter = st.selectbox(
            "Show",
            options=[None] + list(LoanDirection),
            format_func=lambda d: "All loans" if d is None else f"{d.value.title()} loans",
        )
    with col2:
        search = st.text_input("Search person or note")

    loans = run_async(components.loans.list_loans(direction_filter, search or None))
    for loan in loans:
        with st.container(border=True):
            col1, col2, col3 = st.columns([3, 2, 2])
            with col1:
                arrow = "→" if loan.direction == LoanDirection.GIVEN else "←"
                st.markdown(f"**{arrow} {loan.person_name}**")
                st.caption(f"{loan.date_given:%d %b %Y} · {account_names.get(loan.account_id, 'Deleted account')}")
            with col2:
                st.markdown(money(loan.amount))
                st.caption("✅ Returned" if loan.is_returned else "⏳ Outstanding")
            with col3:
                label = "Mark outstanding" if loan.is_returned else "Mark returned"
                if st.button(label, key=f"loan-{loan.id}"):
                    try:
                        run_async(components.loans.toggle_returned(loan.id))
                        st.rerun()
                    except Exception as e:
                        show_failure(e)
                if st.button("🗑️ Delete", key=f"loan-del-{loan.id}"):
                    run_async(components.loans.delete_loan(loan.id))
                    st.rerun()


def render_budgets_page(components: AppComponents):
    """Render the budgets page."""
    st.title("🎯 Budgets")

    month = st.text_input("Month (YYYY-MM)", value=date.today().strftime("%Y-%m"))
    categories = run_async(components.categories.list_categories())
    category_names = {c.id: c.name for c in categories}

    with st.expander("➕ Set Budget"):
        category_id = st.selectbox("Category", options=list(category_names), format_func=category_names.get)
        target = st.number_input(f"Monthly target ({CURRENCY})", min_value=0.0, step=500.0, format="%.2f")
        if st.button("Save Budget", type="primary") and category_id:
            try:
                run_async(components.budgets.save_budget(category_id, month, Decimal(str(target))))
                st.rerun()
            except Exception as e:
                show_failure(e)

        template = st.selectbox(
            "Or start from a template",
            options=BUDGET_TEMPLATES,
            format_func=lambda t: f"{t.name} ({money(t.total)})",
        )
        if st.button("Apply Template"):
            try:
                created = run_async(components.budgets.apply_template(template.name, month))
                st.success(f"Added {len(created)} budget(s)")
            except Exception as e:
                show_failure(e)

    try:
        overview = run_async(components.budgets.overview(month))
    except Exception as e:
        show_failure(e)
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Budgeted", money(overview.total_budgeted))
    col2.metric("Spent", money(overview.total_spent))
    col3.metric("Over budget", overview.exceeded_count)

    sort_by = st.selectbox("Sort by", options=["usage", "amount", "name"])
    for row in run_async(components.budgets.usage(month, sort_by=sort_by)):
        st.markdown(
            f"{STATUS_BADGES[row.status]} **{row.label}**: "
            f"{money(row.spent)} of {money(row.budget.target_amount)}"
        )
        st.progress(min(int(row.utilization), 100))
        if st.button("🗑️", key=f"budget-{row.budget.id}"):
            run_async(components.budgets.delete_budget(row.budget.id))
            st.rerun()


def render_summary_page(components: AppComponents):
    """Render the summary and insights page."""
    st.title("📊 Summary")

    month = st.text_input("Month (YYYY-MM)", value=date.today().strftime("%Y-%m"), key="summary-month")
    try:
        summary = run_async(components.reports.monthly_summary(month))
        insights = run_async(components.reports.insights())
        worth = run_async(components.reports.net_worth())
    except Exception as e:
        show_failure(e)
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", money(summary.total_income))
    col2.metric("Expenses", money(summary.total_expenses))
    col3.metric("Net", money(summary.net))

    if summary.category_spending:
        st.markdown("### Spending by Category")
        st.bar_chart({row.name: float(row.amount) for row in top_categories(summary)})

    st.markdown("### Last 30 Days")
    col1, col2, col3 = st.columns(3)
    col1.metric(
        "Spending",
        money(insights.current_spending),
        f"{insights.spending_change_pct}%",
        delta_color="inverse",
    )
    col2.metric("Daily average", money(insights.avg_daily_spending))
    col3.metric("Net worth", money(worth.total_assets))

    st.progress(
        emergency_fund_progress(insights),
        text=f"Emergency fund: {emergency_fund_progress(insights)}% of six months",
    )
    for tip in spending_tips(insights, CURRENCY):
        st.markdown(f"💡 {tip}")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")
    status = validate_all_settings()

    if status.get("google_sheets", False):
        st.success("✅ Google Sheets (Storage) - Connected")
    else:
        error = status.get("google_sheets_error", "Not configured")
        st.error(f"❌ Google Sheets (Storage) - {error}")
        st.info("Running with in-memory storage. Data is lost on restart.")

    app_settings = get_settings().app
    st.caption(
        f"Environment: {app_settings.app_environment} · "
        f"storage: {app_settings.storage_backend} · currency: {app_settings.currency_symbol}"
    )
    if app_settings.debug_mode:
        st.json({key: str(value) for key, value in status.items()})

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "Set `STORAGE_BACKEND=google_sheets` and the `GOOGLE_SHEETS_*` variables "
        "to keep your data in a spreadsheet."
    )


if __name__ == "__main__":
    main()
