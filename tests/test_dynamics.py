"""
Force Model and Equations of Motion Tests

Tests for:
- Aircraft definition
- Aerodynamic coefficients and loads
- Fixed-pitch propeller engine
- Landing gear
- Force/moment aggregation and saturation
- State derivative and RK4 integration
"""

import pytest
import numpy as np
import os
import sys

# Add package root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sixdof.core.aerodynamics import AerodynamicsModel
from sixdof.core.aircraft import AircraftSpec, MassProperties, WingGeometry, DEFAULT_DERIVATIVES
from sixdof.core.controls import FlightControl, DEFAULT_CONTROLS
from sixdof.core.dynamics import AircraftDynamics
from sixdof.core.errors import ConfigurationError, DegenerateInertiaError
from sixdof.core.forces import ForceMomentAggregator, SaturationLimits
from sixdof.core.ground_reaction import LandingGear
from sixdof.core.integrator import RK4Integrator
from sixdof.core.lookup_table import ConstantDerivative
from sixdof.core.propulsion import FixedPitchPropEngine, STATIC_THRUST_SPEED
from sixdof.core.state import FlightState
from sixdof.environment.atmosphere import environment_at


def neutral_controls(**overrides):
    """Default controls with surfaces centered."""
    controls = dict(DEFAULT_CONTROLS)
    controls[FlightControl.ELEVATOR] = 0.0
    for key, value in overrides.items():
        controls[FlightControl.from_key(key)] = value
    return controls


class TestAircraftSpec:
    """Test aircraft definition."""

    def test_defaults(self):
        aircraft = AircraftSpec()

        assert aircraft.mass == 1247.0
        assert len(aircraft.engines) == 1
        assert set(aircraft.derivatives) == set(DEFAULT_DERIVATIVES)
        assert aircraft.derivatives['CL_alpha'].value() == 4.44

    def test_derivatives_are_read_only(self):
        aircraft = AircraftSpec()

        with pytest.raises(TypeError):
            aircraft.derivatives['CL_alpha'] = ConstantDerivative(1.0)

    def test_override_derivative(self):
        aircraft = AircraftSpec(derivatives={'CM_q': ConstantDerivative(-12.0), 'CD_0': 0.03})

        assert aircraft.derivative('CM_q').value() == -12.0
        assert aircraft.derivative('CD_0').value() == 0.03
        assert aircraft.derivative('CL_0').value() == 0.41

    def test_unknown_derivative(self):
        with pytest.raises(ConfigurationError):
            AircraftSpec(derivatives={'CL_banana': 1.0})

    def test_degenerate_inertia(self):
        with pytest.raises(DegenerateInertiaError):
            AircraftSpec(mass_properties=MassProperties(ix=100.0, iz=100.0, ixz=100.0))

    def test_non_positive_mass(self):
        with pytest.raises(ConfigurationError):
            AircraftSpec(mass_properties=MassProperties(mass=0.0))

    def test_too_many_engines(self):
        engines = [FixedPitchPropEngine(number=(i % 4) + 1) for i in range(5)]

        with pytest.raises(ConfigurationError):
            AircraftSpec(engines=engines)


class TestAerodynamics:
    """Test stability-derivative aerodynamics."""

    @pytest.fixture
    def aero(self):
        return AerodynamicsModel(AircraftSpec())

    def test_zero_alpha_coefficients(self, aero):
        """Straight and level at zero alpha: only the zero-alpha terms remain."""
        state = FlightState(u=50.0, down=-1500.0)

        coeffs = aero.coefficients(state, neutral_controls())

        assert np.isclose(coeffs.CL, DEFAULT_DERIVATIVES['CL_0'])
        assert np.isclose(coeffs.CD, DEFAULT_DERIVATIVES['CD_0'])
        assert np.isclose(coeffs.CM, DEFAULT_DERIVATIVES['CM_0'])
        assert coeffs.CY == 0.0
        assert coeffs.Croll == 0.0
        assert coeffs.CN == 0.0

    def test_lift_slope(self, aero):
        """CL grows by CL_alpha per radian out of ground effect."""
        alpha = np.radians(4.0)
        state = FlightState(u=50.0*np.cos(alpha), w=50.0*np.sin(alpha), down=-1500.0)

        coeffs = aero.coefficients(state, neutral_controls())

        expected = DEFAULT_DERIVATIVES['CL_0'] + DEFAULT_DERIVATIVES['CL_alpha']*alpha
        assert np.isclose(coeffs.CL, expected)
        assert coeffs.CM < 0

    def test_elevator_pitching_moment(self, aero):
        """Trailing-edge-down elevator pitches nose down."""
        state = FlightState(u=50.0, down=-1500.0)

        coeffs = aero.coefficients(state, neutral_controls(elevator=np.radians(5.0)))

        assert np.isclose(coeffs.CM, DEFAULT_DERIVATIVES['CM_d_elev']*np.radians(5.0))

    def test_ground_effect_raises_lift(self, aero):
        """Near the ground the lift slope term grows."""
        alpha = np.radians(4.0)
        high = FlightState(u=50.0*np.cos(alpha), w=50.0*np.sin(alpha), down=-1500.0)
        low = FlightState(u=50.0*np.cos(alpha), w=50.0*np.sin(alpha), down=-2.0)

        CL_high = aero.coefficients(high, neutral_controls()).CL
        CL_low = aero.coefficients(low, neutral_controls()).CL

        assert CL_low > CL_high

    def test_roll_from_aileron(self, aero):
        state = FlightState(u=50.0, down=-1500.0)

        coeffs = aero.coefficients(state, neutral_controls(aileron=np.radians(10.0)))

        assert np.isclose(coeffs.Croll, DEFAULT_DERIVATIVES['Croll_d_ail']*np.radians(10.0))

    def test_lift_acts_up(self, aero):
        """Body z force is negative (up) in level flight."""
        state = FlightState(u=50.0, down=-1500.0)
        env = environment_at(1500.0)

        loads = aero.compute(state, neutral_controls(), env)

        q_bar_S = env.dynamic_pressure(50.0) * aero.S_ref
        assert np.isclose(loads.force[2], -DEFAULT_DERIVATIVES['CL_0']*q_bar_S)
        assert np.isclose(loads.force[0], -DEFAULT_DERIVATIVES['CD_0']*q_bar_S)

    def test_aerodynamic_center_offset(self):
        """Moment includes force × (ac − cg)."""
        geometry = WingGeometry(ac_x=0.5)
        aero_offset = AerodynamicsModel(AircraftSpec(geometry=geometry))
        aero_centered = AerodynamicsModel(AircraftSpec())
        state = FlightState(u=50.0, down=-1500.0)
        env = environment_at(1500.0)

        offset = aero_offset.compute(state, neutral_controls(), env)
        centered = aero_centered.compute(state, neutral_controls(), env)

        expected = centered.moment + np.cross(centered.force, [0.5, 0.0, 0.0])
        assert np.allclose(offset.moment, expected)

    def test_zero_airspeed(self, aero):
        """No flow, no loads, no NaN."""
        loads = aero.compute(FlightState(down=-100.0), neutral_controls(), environment_at(100.0))

        assert np.all(np.isfinite(loads.force))
        assert np.allclose(loads.force, 0.0)


class TestPropulsion:
    """Test fixed-pitch propeller engine."""

    @pytest.fixture
    def engine(self):
        return FixedPitchPropEngine()

    def test_thrust_linear_in_throttle(self, engine):
        """Above the static speed thrust scales linearly with throttle."""
        env = environment_at(1500.0)
        full = engine.thrust(1.0, env, 50.0)

        for throttle in (0.0, 0.25, 0.5, 0.9):
            assert np.isclose(engine.thrust(throttle, env, 50.0), throttle*full)

    def test_max_thrust(self, engine):
        env = environment_at(0.0)

        assert engine.max_thrust(env, 60.0) == engine.thrust(1.0, env, 60.0)

    def test_static_thrust(self, engine):
        """Below the static speed thrust is finite and positive."""
        env = environment_at(0.0)
        thrust = engine.thrust(1.0, env, 0.0)

        assert np.isfinite(thrust)
        assert thrust > 0
        assert engine.thrust(0.0, env, STATIC_THRUST_SPEED) == 0.0

    def test_thrust_drops_with_altitude(self, engine):
        assert (engine.thrust(1.0, environment_at(3000.0), 50.0)
                < engine.thrust(1.0, environment_at(0.0), 50.0))

    def test_compute(self, engine):
        """Thrust along body x; RPM and fuel flow from throttle and mixture."""
        controls = neutral_controls(throttle_1=0.0, mixture_1=0.5)

        output = engine.compute(controls, environment_at(0.0), 50.0)

        assert np.allclose(output.force, 0.0)
        assert output.rpm == 500.0
        assert np.isclose(output.fuel_flow, 0.45)

    def test_offset_engine_moment(self):
        """Engine below the CG pitches the nose up under thrust."""
        engine = FixedPitchPropEngine(position=np.array([0.0, 0.0, 0.5]))

        output = engine.compute(neutral_controls(throttle_1=1.0), environment_at(0.0), 50.0)

        assert output.moment[1] > 0
        assert np.isclose(output.moment[1], 0.5*output.force[0])

    def test_engine_number(self):
        with pytest.raises(ValueError):
            FixedPitchPropEngine(number=5)

    def test_second_engine_uses_own_throttle(self):
        engine = FixedPitchPropEngine(number=2)
        controls = neutral_controls(throttle_1=1.0, throttle_2=0.0)

        assert engine.compute(controls, environment_at(0.0), 50.0).force[0] == 0.0


class TestLandingGear:
    """Test ground reaction."""

    def test_airborne_no_force(self):
        gear = LandingGear()
        state = FlightState(u=50.0, down=-100.0)

        forces, moments = gear.compute(state, neutral_controls())

        assert np.allclose(forces, 0.0)
        assert np.allclose(moments, 0.0)

    def test_compressed_gear_pushes_up(self):
        """Gear below the terrain pushes the airframe up."""
        gear = LandingGear()
        # Struts reach 1.2 m below the CG; put the CG 1.1 m above ground
        state = FlightState(down=-1.1)

        forces, _ = gear.compute(state, neutral_controls())

        assert forces[2] < 0

    def test_brakes_oppose_motion(self):
        gear = LandingGear()
        state = FlightState(u=10.0, down=-1.1)

        rolling, _ = gear.compute(state, neutral_controls())
        braking, _ = gear.compute(state, neutral_controls(brake_l=1.0, brake_r=1.0))

        assert rolling[0] < 0
        assert braking[0] < rolling[0]

    def test_terrain_height(self):
        gear = LandingGear()
        state = FlightState(down=-501.1)

        forces, _ = gear.compute(state, neutral_controls(), terrain_height=500.0)

        assert forces[2] < 0


class TestForceAggregation:
    """Test force/moment summation and saturation."""

    @pytest.fixture
    def aggregator(self):
        return ForceMomentAggregator(AircraftSpec(landing_gear=LandingGear()))

    def test_sum(self, aggregator):
        accel, moment = aggregator.combine(
            np.array([100.0, 0.0, -1000.0]), np.array([0.0, 10.0, 0.0]),
            [np.array([500.0, 0.0, 0.0])], [np.array([0.0, 5.0, 0.0])],
            np.array([0.0, 0.0, 200.0]), np.zeros(3))

        assert np.allclose(accel, np.array([600.0, 0.0, -800.0]) / aggregator.mass)
        assert np.allclose(moment, [0.0, 15.0, 0.0])

    def test_saturation(self, aggregator):
        """Extreme loads are clamped per axis."""
        limits = aggregator.limits
        accel, moment = aggregator.combine(
            np.array([1e12, -1e12, 0.0]), np.array([1e12, -1e12, 1.0]))

        assert np.allclose(accel, [limits.max_acceleration, -limits.max_acceleration, 0.0])
        assert np.allclose(moment, [limits.max_moment, -limits.max_moment, 1.0])

    def test_compute(self, aggregator):
        state = FlightState(u=50.0, down=-1500.0)

        loads = aggregator.compute(state, neutral_controls(), environment_at(1500.0))

        assert len(loads.engines) == 1
        assert np.allclose(loads.ground_force, 0.0)
        assert np.all(np.isfinite(loads.acceleration))

    def test_limit_state(self):
        """Rates, pitch and depth below terrain are bounded; heading wraps."""
        limits = SaturationLimits()
        state = FlightState(p=50.0, q=-50.0, theta=2.0, psi=-0.5, down=10.0)

        limited = limits.limit_state(state, terrain_height=0.0)

        assert limited.p == limits.max_angular_rate
        assert limited.q == -limits.max_angular_rate
        assert limited.theta == pytest.approx(limits.max_pitch)
        assert limited.psi == pytest.approx(2*np.pi - 0.5)
        assert limited.down == pytest.approx(limits.max_depth_below_terrain)


class TestEquationsOfMotion:
    """Test the state derivative."""

    @pytest.fixture
    def dynamics(self):
        aircraft = AircraftSpec(engines=())
        return AircraftDynamics(ForceMomentAggregator(aircraft))

    def test_free_fall(self):
        """With no aerodynamics or thrust a body at rest falls at g."""
        derivatives = {name: 0.0 for name in DEFAULT_DERIVATIVES}
        aircraft = AircraftSpec(derivatives=derivatives, engines=())
        dynamics = AircraftDynamics(ForceMomentAggregator(aircraft))
        env = environment_at(1000.0)

        x_dot, _ = dynamics.state_derivative(FlightState(down=-1000.0), neutral_controls(), env)

        assert np.isclose(x_dot[2], env.gravity)
        assert np.allclose(x_dot[3:6], 0.0)
        assert np.allclose(x_dot[9:12], 0.0)

    def test_position_rates(self, dynamics):
        """Position rates are the NED velocity."""
        state = FlightState(u=50.0, psi=np.pi/2, down=-1500.0)

        x_dot, _ = dynamics.state_derivative(state, neutral_controls(), environment_at(1500.0))

        assert np.allclose(x_dot[9:12], [0.0, 50.0, 0.0], atol=1e-9)

    def test_euler_kinematics(self, dynamics):
        """Level attitude: Euler rates equal body rates."""
        state = FlightState(u=50.0, p=0.1, q=0.2, r=0.3, down=-1500.0)

        x_dot, _ = dynamics.state_derivative(state, neutral_controls(), environment_at(1500.0))

        assert np.allclose(x_dot[6:9], [0.1, 0.2, 0.3])

    def test_derivative_function(self, dynamics):
        state = FlightState(u=50.0, down=-1500.0)
        controls = neutral_controls()
        env = environment_at(1500.0)

        f = dynamics.derivative_function(controls, env)
        x_dot, _ = dynamics.state_derivative(state, controls, env)

        assert np.allclose(f(state.to_array()), x_dot)


class TestRK4:
    """Test RK4 integration."""

    def test_exponential_decay(self):
        """x' = -x from x(0) = 1."""
        integrator = RK4Integrator(dt=0.1)

        t, x = integrator.integrate(np.array([1.0]), (0.0, 1.0), lambda x: -x)

        assert np.isclose(t[-1], 1.0)
        assert np.isclose(x[-1, 0], np.exp(-1.0), atol=1e-6)

    def test_fourth_order_convergence(self):
        """Halving dt cuts the error by about 16."""
        def f(x):
            return np.array([x[1], -x[0]])

        errors = []
        for dt in (0.2, 0.1):
            _, x = RK4Integrator(dt).integrate(np.array([1.0, 0.0]), (0.0, 2.0), f)
            errors.append(abs(x[-1, 0] - np.cos(2.0)))

        assert 12.0 < errors[0] / errors[1] < 20.0

    def test_deterministic(self):
        """Identical inputs give bit-identical outputs."""
        integrator = RK4Integrator(0.05)
        x0 = np.array([1.0, 2.0, 3.0])

        def f(x):
            return np.sin(x) * x[::-1]

        assert np.array_equal(integrator.step(x0, f), integrator.step(x0.copy(), f))

    def test_invalid_dt(self):
        with pytest.raises(ValueError):
            RK4Integrator(dt=0.0)
