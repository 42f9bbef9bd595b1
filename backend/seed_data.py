"""
마스터 데이터 시딩 스크립트
- 건자재 품목 24개 (타일, 건축자재, 지붕재, 배관자재) — 창고 구역 A~D
- 데모 주문 3건 (RECEIVED, 파이프라인 미실행)
- 실행: cd backend && python seed_data.py
"""

import random
import sys
import os
from datetime import timedelta

# backend/ 디렉토리 기준으로 logistics_ai 패키지를 찾을 수 있도록 경로 설정
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from logistics_ai.agents.orchestrator import LogisticsOrchestrator
from logistics_ai.clock import system_clock
from logistics_ai.database import engine, SessionLocal, Base
from logistics_ai.models import Product
from logistics_ai.models.product import ProductCategory

# (sku, 이름, 카테고리, 단위 중량 kg, 단위 부피 m³, 구역)
CATALOGUE = [
    # 타일: 파손 주의, 출고장 가까운 A 구역
    ("TIL-60X60-GRY", "Feinsteinzeug Fliese 60x60 Grau (Paket)", ProductCategory.TILES, 28.0, 0.03, "A"),
    ("TIL-30X60-WHT", "Wandfliese 30x60 Weiß glänzend (Paket)", ProductCategory.TILES, 18.5, 0.02, "A"),
    ("TIL-120X60-ANT", "Großformat Fliese 120x60 Anthrazit (Paket)", ProductCategory.TILES, 42.0, 0.05, "A"),
    ("TIL-MOS-GLS", "Glasmosaik 30x30 Blau (Karton)", ProductCategory.TILES, 9.0, 0.01, "A"),
    ("TIL-TER-OUT", "Terrassenplatte 60x60 20mm (Paket)", ProductCategory.TILES, 55.0, 0.04, "A"),
    ("TIL-SKR-GRY", "Sockelleiste Feinsteinzeug Grau (Bund)", ProductCategory.TILES, 6.5, 0.01, "A"),
    # 건축자재: 중량물 다수, B/C 구역
    ("CON-CEM-25", "Portlandzement CEM I 25kg", ProductCategory.CONSTRUCTION_MATERIALS, 25.0, 0.02, "B"),
    ("CON-MRT-40", "Mauermörtel MG IIa 40kg", ProductCategory.CONSTRUCTION_MATERIALS, 40.0, 0.03, "B"),
    ("CON-KSL-PAL", "Kalksandstein 2DF (Palette)", ProductCategory.CONSTRUCTION_MATERIALS, 950.0, 1.10, "C"),
    ("CON-PBL-25", "Porenbetonstein 25cm (Palette)", ProductCategory.CONSTRUCTION_MATERIALS, 620.0, 1.50, "C"),
    ("CON-GKB-125", "Gipskartonplatte 12,5mm 2600x1250", ProductCategory.CONSTRUCTION_MATERIALS, 26.0, 0.04, "B"),
    ("CON-STM-Q188", "Baustahlmatte Q188A", ProductCategory.CONSTRUCTION_MATERIALS, 68.0, 0.06, "C"),
    # 지붕재: C/D 구역
    ("ROF-ZIE-RED", "Tondachziegel Rot (Paket 10 Stk)", ProductCategory.ROOFING_MATERIALS, 42.0, 0.05, "C"),
    ("ROF-BET-ANT", "Betondachstein Anthrazit (Paket 10 Stk)", ProductCategory.ROOFING_MATERIALS, 46.0, 0.05, "D"),
    ("ROF-BAH-BIT", "Bitumen-Dachbahn V13 (Rolle)", ProductCategory.ROOFING_MATERIALS, 35.0, 0.08, "D"),
    ("ROF-RIN-ZNK", "Dachrinne Zink 333mm 3m", ProductCategory.ROOFING_MATERIALS, 7.5, 0.02, "D"),
    ("ROF-UTB-75", "Unterspannbahn 75m² (Rolle)", ProductCategory.ROOFING_MATERIALS, 12.0, 0.03, "D"),
    ("ROF-DAM-MIN", "Mineralwolle Dämmung 160mm (Paket)", ProductCategory.ROOFING_MATERIALS, 9.5, 0.35, "D"),
    # 배관자재: B/D 구역
    ("PLU-HTR-110", "HT-Rohr DN110 2m", ProductCategory.PLUMBING_SUPPLIES, 2.2, 0.02, "B"),
    ("PLU-KGR-160", "KG-Rohr DN160 5m", ProductCategory.PLUMBING_SUPPLIES, 12.8, 0.10, "D"),
    ("PLU-CU-22", "Kupferrohr 22mm 5m", ProductCategory.PLUMBING_SUPPLIES, 3.0, 0.01, "B"),
    ("PLU-MVR-16", "Mehrschichtverbundrohr 16mm (Rolle 100m)", ProductCategory.PLUMBING_SUPPLIES, 11.0, 0.09, "B"),
    ("PLU-WCS-WH", "Wand-WC spülrandlos Weiß", ProductCategory.PLUMBING_SUPPLIES, 22.0, 0.08, "D"),
    ("PLU-VRW-120", "Vorwandelement WC 112cm", ProductCategory.PLUMBING_SUPPLIES, 16.0, 0.12, "D"),
]

DEMO_ORDERS = [
    ("BAU-HH-001", "Hamburger Bau GmbH", "Spaldingstraße 64, 20097 Hamburg, Germany",
     [("CON-CEM-25", 10, 6.90), ("PLU-HTR-110", 8, 4.50)]),
    ("FLI-B-014", "Fliesen Berlin Meisterbetrieb", "Kantstraße 12, 10623 Berlin",
     [("TIL-60X60-GRY", 12, 39.90), ("TIL-SKR-GRY", 6, 14.50)]),
    ("DACH-M-007", "Dachdeckerei Huber", "Leopoldstraße 88, 80802 Munich, Deutschland",
     [("ROF-ZIE-RED", 30, 18.40), ("ROF-UTB-75", 4, 89.00), ("ROF-RIN-ZNK", 10, 21.90)]),
]


def seed_products(session, rng: random.Random):
    """건자재 품목 생성. 구역 내 선반/칸 번호는 무작위"""
    products = []
    for sku, name, category, weight, volume, zone in CATALOGUE:
        products.append(Product(
            sku=sku,
            name=name,
            category=category.value,
            weight_kg=weight,
            volume_m3=volume,
            stock_quantity=rng.randint(20, 400),
            location=f"{zone}-{rng.randint(1, 12):02d}-{rng.randint(1, 6):02d}",
        ))

    session.add_all(products)
    session.commit()
    print(f"  [OK] Products: {len(products)}개 생성")
    return products


def seed_demo_orders():
    """접수 경로(create_order)로 데모 주문 생성. 처리는 API 또는 모니터링에 맡긴다."""
    orchestrator = LogisticsOrchestrator(SessionLocal, clock=system_clock)
    delivery = system_clock.now() + timedelta(days=5)
    orders = [
        orchestrator.create_order(client_id, name, address, delivery, lines)
        for client_id, name, address, lines in DEMO_ORDERS
    ]
    print(f"  [OK] Orders: {len(orders)}건 생성 (RECEIVED)")
    return orders


def main():
    print("=" * 60)
    print("B2B 출하 자동화 시스템 — 마스터 데이터 시딩")
    print("=" * 60)

    # 테이블 전체 재생성
    print("\n[1/3] 테이블 생성 중...")
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("  [OK] 테이블 생성 완료")

    session = SessionLocal()
    try:
        print("\n[2/3] Products 시딩...")
        products = seed_products(session, random.Random(42))
    except Exception as e:
        session.rollback()
        print(f"\n[ERROR] 시딩 실패: {e}")
        raise
    finally:
        session.close()

    print("\n[3/3] 데모 주문 시딩...")
    orders = seed_demo_orders()

    print("\n" + "=" * 60)
    print("시딩 완료!")
    print(f"  Products: {len(products)}개")
    print(f"  Orders:   {len(orders)}건")
    print("=" * 60)


if __name__ == "__main__":
    main()
