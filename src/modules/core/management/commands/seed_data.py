from __future__ import annotations

from django.core.management.base import BaseCommand
from django.db import transaction

from modules.accounts.services import ensure_default_admin
from modules.categories.models import Category
from modules.products.models import Product

CATEGORIES = [
    # (name, slug, icon, sort_order)
    ("Te", "te", "🍵", 1),
    ("Kaffe", "kaffe", "☕", 2),
    ("Choklad", "choklad", "🍫", 3),
]

PRODUCTS = [
    # (name, category, price, weight, origin, featured, image, description)
    (
        "Earl Grey Imperial", "te", 149, "100g", "Sri Lanka", True,
        "/images/earl-grey.jpg",
        "Svart te aromatiserat med bergamott från Kalabrien.",
    ),
    (
        "English Breakfast", "te", 129, "100g", "Blandning", True,
        "/images/english-breakfast.jpg",
        "Kraftfull blandning av Assam, Ceylon och kenyanskt te.",
    ),
    (
        "Darjeeling First Flush", "te", 219, "50g", "Indien", False,
        "/images/darjeeling.jpg",
        "Ljust och blommigt vårte från Himalaya.",
    ),
    (
        "Lady Grey", "te", 159, "100g", "Kina", False,
        "/images/lady-grey.jpg",
        "Mildare Earl Grey med citrus och blåklint.",
    ),
    (
        "Lapsang Souchong", "te", 179, "100g", "Kina", False,
        "/images/lapsang.jpg",
        "Rökt svart te från Fujian-provinsen.",
    ),
    (
        "Ethiopian Yirgacheffe", "kaffe", 189, "250g", "Etiopien", True,
        "/images/ethiopia.jpg",
        "Ljusrostat kaffe med toner av blåbär, jasmin och citrus.",
    ),
    (
        "Colombian Supremo", "kaffe", 169, "250g", "Colombia", False,
        "/images/colombian.jpg",
        "Medelrostat kaffe med nötiga toner och karamell.",
    ),
    (
        "Jamaican Blue Mountain", "kaffe", 449, "200g", "Jamaica", True,
        "/images/jamaica.jpg",
        "Mjukt och komplext kaffe helt utan bitterhet.",
    ),
    (
        "Single Origin Ecuador 70%", "choklad", 89, "100g", "Ecuador", True,
        "/images/ecuador-choc.jpg",
        "Mörk choklad med toner av röda bär.",
    ),
    (
        "Belgisk Mjölkchoklad", "choklad", 79, "100g", "Belgien", False,
        "/images/belgian-milk.jpg",
        "Krämig och klassisk belgisk mjölkchoklad.",
    ),
    (
        "Chokladpraliner Assorterade", "choklad", 249, "200g", "Sverige", True,
        "/images/pralines.jpg",
        "Ask med 16 handgjorda praliner.",
    ),
    (
        "Varm Choklad Deluxe", "choklad", 119, "300g", "Frankrike", False,
        "/images/hot-choc.jpg",
        "Drickchoklad med 60% kakao.",
    ),
]


class Command(BaseCommand):
    help = "Seed the catalog, categories and default admin (idempotent)."

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding Tegrevinnan data...")

        categories = self._seed_categories()
        products = self._seed_products()
        admin_created = ensure_default_admin()

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"categories={categories}, "
                f"products={products}, "
                f"admin_created={admin_created}"
            )
        )

    def _seed_categories(self) -> int:
        created = 0
        for name, slug, icon, sort_order in CATEGORIES:
            _, was_created = Category.objects.get_or_create(
                slug=slug,
                defaults={"name": name, "icon": icon, "sort_order": sort_order},
            )
            created += int(was_created)
        return created

    def _seed_products(self) -> int:
        if Product.objects.alive().exists():
            self.stdout.write(self.style.WARNING("Products already exist, skipping."))
            return 0

        for name, category, price, weight, origin, featured, image, description in PRODUCTS:
            Product.objects.create(
                name=name,
                category=category,
                price=price,
                weight=weight,
                origin=origin,
                featured=featured,
                image=image,
                description=description,
            )
        return len(PRODUCTS)
