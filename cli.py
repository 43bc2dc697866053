import argparse
import logging
import os
import sys

import requests
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sdk.cache import CacheService, JsonFileStorage
from sdk.pystore import StoreAPIError, StoreClient
from sdk.repositories import CartRepository, OrderRepository, ProductRepository, SavedItemsRepository

console = Console()

STORE_BASE_URL = os.getenv("STORE_BASE_URL", "http://127.0.0.1:8085")
STORE_CACHE_FILE = os.getenv("STORE_CACHE_FILE", "~/.jewelry_store/storage.json")
STORE_CACHE_TTL_MINUTES = float(os.getenv("STORE_CACHE_TTL_MINUTES", "30"))


def _price(minor_units) -> str:
    return f"₹{(minor_units or 0) / 100:,.2f}"


def show_products(products):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return
    table = Table(title="Products", box=box.ROUNDED, header_style="bold cyan", show_lines=True)
    table.add_column("ID", style="dim", width=12)
    table.add_column("Name", style="bold", width=24)
    table.add_column("Price", justify="right", width=12)
    table.add_column("Category", width=12)
    table.add_column("Gender", width=8)
    table.add_column("Flags", width=14)
    for p in products:
        flags = []
        if p.get("is_new_arrival"):
            flags.append("new")
        if p.get("is_sold_out"):
            flags.append("sold out")
        table.add_row(p.get("id", "N/A"), p.get("name", "N/A"), _price(p.get("price")),
                      p.get("category", "N/A"), p.get("gender", "N/A"), ", ".join(flags))
    console.print(table)


def show_lines(title, items):
    if not items:
        console.print(f"[italic yellow]{title}: empty[/italic yellow]")
        return
    table = Table(title=title, box=box.ROUNDED, header_style="bold blue", show_lines=True)
    table.add_column("Item ID", style="dim", width=12)
    table.add_column("Product", style="bold", width=24)
    table.add_column("Qty", justify="right", width=6)
    table.add_column("Subtotal", justify="right", width=12)
    total = 0
    for it in items:
        prod = it.get("product") or {}
        qty = it.get("quantity", 1)
        line = (prod.get("price") or 0) * qty
        total += line
        table.add_row(it["id"], prod.get("name", it.get("product_id", "?")), str(qty), _price(line))
    console.print(table)
    console.print(f"[bold green]Total: {_price(total)}[/bold green]")


def show_orders(orders):
    if not orders:
        console.print("[italic yellow]No orders[/italic yellow]")
        return
    table = Table(title="Orders", box=box.ROUNDED, header_style="bold magenta", show_lines=True)
    table.add_column("Order", style="dim", width=12)
    table.add_column("Gateway order", width=18)
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Status", width=10)
    table.add_column("Items", justify="right", width=6)
    for o in orders:
        table.add_row(o["id"], o.get("order_id", ""), _price(o.get("amount")), o.get("status", ""), str(len(o.get("items", []))))
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Jewelry store CLI")
    parser.add_argument("--base-url", default=STORE_BASE_URL, help="Store API base URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Auth
    for name in ("signup", "login"):
        sp = subparsers.add_parser(name, help=f"{name.capitalize()} and remember the token")
        sp.add_argument("--email", required=True)
        sp.add_argument("--password", required=True)
    subparsers.add_parser("logout", help="Forget the stored token")

    # Products
    lp = subparsers.add_parser("list-products", help="List products (cached)")
    lp.add_argument("--refresh", action="store_true", help="Bypass and overwrite the cache")
    gp = subparsers.add_parser("get-product", help="Get a product by its ID")
    gp.add_argument("--product-id", required=True)
    cc = subparsers.add_parser("clear-cache", help="Drop the cached product list")
    cc.add_argument("--all", action="store_true", help="Drop every cached entry")

    # Cart
    add = subparsers.add_parser("add-to-cart", help="Add product to cart")
    add.add_argument("--product-id", required=True)
    add.add_argument("--qty", type=int, default=1)
    up = subparsers.add_parser("update-cart", help="Set quantity of a cart item (0 removes it)")
    up.add_argument("--item-id", required=True)
    up.add_argument("--qty", type=int, required=True)
    rm = subparsers.add_parser("remove-from-cart", help="Remove a cart item")
    rm.add_argument("--item-id", required=True)
    subparsers.add_parser("view-cart", help="View cart contents")
    mts = subparsers.add_parser("save-for-later", help="Move a cart item to saved items")
    mts.add_argument("--item-id", required=True)
    mts.add_argument("--product-id", required=True)

    # Saved items
    sv = subparsers.add_parser("save", help="Save a product for later")
    sv.add_argument("--product-id", required=True)
    subparsers.add_parser("view-saved", help="View saved items")
    mtc = subparsers.add_parser("move-to-cart", help="Move a saved item to the cart")
    mtc.add_argument("--item-id", required=True)
    mtc.add_argument("--product-id", required=True)

    # Orders
    subparsers.add_parser("list-orders", help="List your orders")
    co = subparsers.add_parser("checkout", help="Create a gateway order for the current cart")
    co.add_argument("--line1", required=True, help="Shipping address line")
    co.add_argument("--city", required=True)
    co.add_argument("--pincode", required=True)
    co.add_argument("--currency", default="INR")
    vp = subparsers.add_parser("verify-payment", help="Confirm a payment returned by the gateway")
    vp.add_argument("--order-id", required=True)
    vp.add_argument("--razorpay-order-id", required=True)
    vp.add_argument("--razorpay-payment-id", required=True)
    vp.add_argument("--razorpay-signature", required=True)
    pf = subparsers.add_parser("payment-failed", help="Report that the gateway payment failed")
    pf.add_argument("--order-id", required=True)
    pf.add_argument("--reason")

    # Admin
    ap = subparsers.add_parser("admin-add-product", help="Create a product (admin)")
    ap.add_argument("--name", required=True)
    ap.add_argument("--price", type=int, required=True, help="Price in paise")
    ap.add_argument("--category", required=True)
    ap.add_argument("--gender", default="unisex")
    ap.add_argument("--description")
    ap.add_argument("--image-url")
    ap.add_argument("--new-arrival", action="store_true")
    au = subparsers.add_parser("admin-update-product", help="Change fields of a product (admin)")
    au.add_argument("--product-id", required=True)
    au.add_argument("--name")
    au.add_argument("--price", type=int)
    au.add_argument("--category")
    au.add_argument("--gender")
    au.add_argument("--description")
    au.add_argument("--image-url")
    au.add_argument("--new-arrival", action=argparse.BooleanOptionalAction, default=None)
    au.add_argument("--sold-out", action=argparse.BooleanOptionalAction, default=None)
    ad = subparsers.add_parser("admin-delete-product", help="Delete a product (admin)")
    ad.add_argument("--product-id", required=True)
    ai = subparsers.add_parser("admin-upload-image", help="Upload a product image (admin)")
    ai.add_argument("--path", required=True)
    ai.add_argument("--content-type", default="application/octet-stream")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    storage = JsonFileStorage(STORE_CACHE_FILE)
    client = StoreClient(base_url=args.base_url, storage=storage)
    cache = CacheService(storage=storage, ttl_seconds=STORE_CACHE_TTL_MINUTES * 60)
    products = ProductRepository(client, cache)
    cart = CartRepository(client)
    saved = SavedItemsRepository(client)
    orders = OrderRepository(client)

    try:
        if args.command == "signup":
            console.print(client.signup(args.email, args.password))
        elif args.command == "login":
            console.print(client.login(args.email, args.password))
        elif args.command == "logout":
            client.logout()
            console.print("[green]Logged out[/green]")
        elif args.command == "list-products":
            show_products(products.get_products(force_refresh=args.refresh))
        elif args.command == "get-product":
            p = products.get_product_by_id(args.product_id)
            show_products([p] if p else [])
        elif args.command == "clear-cache":
            if args.all:
                cache.clear_all_cache()
            else:
                products.invalidate()
            console.print("[green]Cache cleared[/green]")
        elif args.command == "add-to-cart":
            console.print(cart.add_to_cart(args.product_id, args.qty))
        elif args.command == "update-cart":
            console.print(cart.update_cart_item_quantity(args.item_id, args.qty))
        elif args.command == "remove-from-cart":
            console.print(cart.remove_from_cart(args.item_id))
        elif args.command == "view-cart":
            show_lines("Cart", cart.get_cart_items())
        elif args.command == "save-for-later":
            console.print(cart.move_to_saved_items(args.item_id, args.product_id))
        elif args.command == "save":
            console.print(saved.save_item(args.product_id))
        elif args.command == "view-saved":
            show_lines("Saved items", saved.get_saved_items())
        elif args.command == "move-to-cart":
            console.print(saved.move_to_cart(args.item_id, args.product_id))
        elif args.command == "list-orders":
            show_orders(orders.list_orders())
        elif args.command == "checkout":
            items = cart.get_cart_items()
            if not items:
                console.print("[italic yellow]Cart is empty[/italic yellow]")
                return 1
            lines = [{
                "product_id": it["product_id"],
                "quantity": it["quantity"],
                "price": (it.get("product") or {}).get("price") or 0,
            } for it in items]
            amount = sum(line["price"] * line["quantity"] for line in lines)
            address = {"line1": args.line1, "city": args.city, "pincode": args.pincode}
            console.print(orders.create_order(amount, address, lines, currency=args.currency))
        elif args.command == "verify-payment":
            console.print(orders.verify_payment(args.order_id, args.razorpay_order_id,
                                                args.razorpay_payment_id, args.razorpay_signature))
        elif args.command == "payment-failed":
            console.print(orders.report_payment_failure(args.order_id, args.reason))
        elif args.command == "admin-add-product":
            created = products.create_product({
                "name": args.name,
                "price": args.price,
                "category": args.category,
                "gender": args.gender,
                "description": args.description,
                "image_url": args.image_url,
                "is_new_arrival": args.new_arrival,
            })
            if created is None:
                console.print("[red]Product was not created[/red]")
                return 1
            show_products([created])
        elif args.command == "admin-update-product":
            fields = {
                "name": args.name,
                "price": args.price,
                "category": args.category,
                "gender": args.gender,
                "description": args.description,
                "image_url": args.image_url,
                "is_new_arrival": args.new_arrival,
                "is_sold_out": args.sold_out,
            }
            changes = {k: v for k, v in fields.items() if v is not None}
            updated = products.update_product(args.product_id, changes)
            if updated is None:
                console.print("[red]Product was not updated[/red]")
                return 1
            show_products([updated])
        elif args.command == "admin-delete-product":
            if not products.delete_product(args.product_id):
                console.print("[red]Product was not deleted[/red]")
                return 1
            console.print(f"[green]Deleted {args.product_id}[/green]")
        elif args.command == "admin-upload-image":
            url = products.upload_product_image(args.path, args.content_type)
            if url is None:
                console.print("[red]Upload failed[/red]")
                return 1
            console.print(url)
    except StoreAPIError as e:
        console.print(f"[red]Error {e.status_code}: {e.detail}[/red]")
        return 1
    except requests.RequestException as e:
        console.print(f"[red]Cannot reach the store at {args.base_url}: {e}[/red]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
